from typing import Optional
from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session
from pcshop.infrastructure.cache import ResponseCache, get_cache
from pcshop.infrastructure.db import get_db
from pcshop.application.audit import RequestMeta
from pcshop.application.authorization import Actor
from pcshop.application.configurations import ConfigurationService
from pcshop.application.schemas import (
    ConfigurationCreate, ConfigurationUpdate, ConfigurationRead, RejectRequest, PublishRequest,
)
from .deps import get_actor, get_optional_actor, get_request_meta

router = APIRouter(prefix="/configurations", tags=["configurations"])

PUBLIC_CACHE_KEY = "public:configurations"

@router.post("", response_model=ConfigurationRead, status_code=201)
def create_configuration(payload: ConfigurationCreate, db: Session = Depends(get_db),
                         actor: Actor = Depends(get_actor)):
    return ConfigurationService(db).create(payload, actor)

@router.get("", response_model=list[ConfigurationRead])
def list_my_configurations(db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return ConfigurationService(db).list_for_user(actor)

@router.get("/public", response_model=list[ConfigurationRead])
def list_public_configurations(db: Session = Depends(get_db), cache: ResponseCache = Depends(get_cache)):
    """Ready-made builds listed in the shop."""
    cached = cache.get(PUBLIC_CACHE_KEY)
    if cached is not None:
        return cached
    data = [
        ConfigurationRead.model_validate(c).model_dump(mode="json", by_alias=True)
        for c in ConfigurationService(db).list_public()
    ]
    cache.set(PUBLIC_CACHE_KEY, data)
    return data

@router.get("/pending", response_model=list[ConfigurationRead])
def list_pending_configurations(db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return ConfigurationService(db).list_pending(actor)

@router.get("/{configuration_id}", response_model=ConfigurationRead)
def get_configuration(configuration_id: str, db: Session = Depends(get_db),
                      actor: Optional[Actor] = Depends(get_optional_actor)):
    return ConfigurationService(db).get_for_actor(configuration_id, actor)

@router.patch("/{configuration_id}", response_model=ConfigurationRead)
def update_configuration(configuration_id: str, payload: ConfigurationUpdate,
                         db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return ConfigurationService(db).update(configuration_id, payload, actor)

@router.delete("/{configuration_id}", status_code=204)
def delete_configuration(configuration_id: str, db: Session = Depends(get_db),
                         actor: Actor = Depends(get_actor), cache: ResponseCache = Depends(get_cache)):
    ConfigurationService(db).delete(configuration_id, actor)
    cache.delete_prefix(PUBLIC_CACHE_KEY)
    return Response(status_code=204)

@router.post("/{configuration_id}/submit", response_model=ConfigurationRead)
def submit_configuration(configuration_id: str, db: Session = Depends(get_db),
                         actor: Actor = Depends(get_actor), meta: RequestMeta = Depends(get_request_meta)):
    return ConfigurationService(db).submit(configuration_id, actor, meta)

@router.post("/{configuration_id}/approve", response_model=ConfigurationRead)
def approve_configuration(configuration_id: str, db: Session = Depends(get_db),
                          actor: Actor = Depends(get_actor), meta: RequestMeta = Depends(get_request_meta)):
    return ConfigurationService(db).approve(configuration_id, actor, meta)

@router.post("/{configuration_id}/reject", response_model=ConfigurationRead)
def reject_configuration(configuration_id: str, payload: RejectRequest, db: Session = Depends(get_db),
                         actor: Actor = Depends(get_actor), meta: RequestMeta = Depends(get_request_meta)):
    return ConfigurationService(db).reject(configuration_id, actor, payload.reason, meta)

@router.post("/{configuration_id}/publish", response_model=ConfigurationRead)
def publish_configuration(configuration_id: str, payload: Optional[PublishRequest] = None,
                          db: Session = Depends(get_db), actor: Actor = Depends(get_actor),
                          meta: RequestMeta = Depends(get_request_meta),
                          cache: ResponseCache = Depends(get_cache)):
    config = ConfigurationService(db).publish(configuration_id, actor, payload, meta)
    cache.delete_prefix(PUBLIC_CACHE_KEY)
    return config
