from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from pcshop.infrastructure.db import get_db
from pcshop.application.audit import AuditService
from pcshop.application.authorization import Actor, Action, authorize
from pcshop.application.schemas import AuditLogRead, AuditPage, Pagination
from .deps import get_actor

router = APIRouter(prefix="/admin/audit-logs", tags=["admin"])

@router.get("", response_model=AuditPage)
def list_audit_logs(
    action: Optional[str] = Query(None, max_length=30),
    entity_type: Optional[str] = Query(None, alias="entityType", max_length=30),
    entity_id: Optional[str] = Query(None, alias="entityId", max_length=64),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    authorize(actor, Action.VIEW_AUDIT_LOG)
    logs, total = AuditService(db).list(action, entity_type, entity_id, page, limit)
    return AuditPage(
        logs=[AuditLogRead.model_validate(log) for log in logs],
        pagination=Pagination.build(page, limit, total),
    )
