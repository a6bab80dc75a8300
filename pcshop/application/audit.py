from dataclasses import dataclass
from typing import Any, Dict, Optional
from sqlalchemy import select, func
from sqlalchemy.orm import Session
from pcshop.domain.models import AuditLog

SYSTEM_ACTOR = "system"

@dataclass(frozen=True)
class RequestMeta:
    ip_address: str = ""
    user_agent: str = ""

def record_audit(
    db: Session,
    action: str,
    entity_type: str,
    entity_id: str,
    details: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
    meta: Optional[RequestMeta] = None,
) -> AuditLog:
    """Stage an audit entry in the caller's transaction (no commit)."""
    meta = meta or RequestMeta()
    entry = AuditLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
        ip_address=meta.ip_address[:64],
        user_agent=meta.user_agent[:255],
    )
    db.add(entry)
    return entry

class AuditService:
    def __init__(self, db: Session):
        self.db = db

    def list(self, action: Optional[str] = None, entity_type: Optional[str] = None,
             entity_id: Optional[str] = None, page: int = 1, limit: int = 50):
        query = select(AuditLog)
        if action:
            query = query.where(AuditLog.action == action)
        if entity_type:
            query = query.where(AuditLog.entity_type == entity_type)
        if entity_id:
            query = query.where(AuditLog.entity_id == entity_id)
        total = self.db.scalar(select(func.count()).select_from(query.subquery()))
        rows = self.db.scalars(
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return rows, total
