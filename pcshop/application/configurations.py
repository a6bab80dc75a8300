from decimal import Decimal
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pcshop.domain.models import Configuration, ConfigItem, ConfigurationStatus, OrderItem, ProductType, StockItem, Role
from pcshop.domain.errors import ShopError, ValidationFailed, NotFound, IllegalTransition, Forbidden
from pcshop.domain.transitions import next_configuration_status
from pcshop.core.logging_config import get_logger
from .authorization import Actor, Action, authorize, is_authorized
from .audit import record_audit, RequestMeta
from .schemas import ConfigurationCreate, ConfigurationUpdate, ConfigItemInput, PublishRequest

logger = get_logger(__name__)

class ConfigurationService:
    def __init__(self, db: Session):
        self.db = db

    def _price_components(self, components: list[ConfigItemInput]) -> tuple[list[ConfigItem], Decimal]:
        """Build config items and their total from catalog prices."""
        merged: dict[str, int] = {}
        for item in components:
            merged[item.component_id] = merged.get(item.component_id, 0) + item.quantity
        prices = dict(self.db.execute(
            select(StockItem.id, StockItem.price).where(StockItem.id.in_(list(merged)))
        ).all())
        missing = sorted(set(merged) - set(prices))
        if missing:
            raise ValidationFailed(f"Unknown components: {', '.join(missing)}", {"componentIds": missing})
        items = [ConfigItem(component_id=cid, quantity=qty) for cid, qty in merged.items()]
        total = sum((prices[cid] * qty for cid, qty in merged.items()), Decimal("0.00"))
        return items, total

    def _load(self, configuration_id: str) -> Configuration:
        config = self.db.get(Configuration, configuration_id)
        if config is None:
            raise NotFound("Configuration not found")
        return config

    def _commit(self, context: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Configuration {context} failed", exc_info=True)
            raise

    # Queries

    def get_for_actor(self, configuration_id: str, actor: Optional[Actor]) -> Configuration:
        config = self.db.get(Configuration, configuration_id)
        if config is None:
            raise NotFound("Configuration not found")
        if config.is_public:
            return config
        if actor is None or not is_authorized(actor.role, actor.user_id, config.user_id, Action.VIEW_CONFIGURATION):
            raise NotFound("Configuration not found")
        return config

    def list_for_user(self, actor: Actor):
        return self.db.scalars(
            select(Configuration).where(Configuration.user_id == actor.user_id)
            .order_by(Configuration.updated_at.desc())
        ).all()

    def list_public(self):
        return self.db.scalars(
            select(Configuration).where(Configuration.is_public.is_(True))
            .order_by(Configuration.updated_at.desc())
        ).all()

    def list_pending(self, actor: Actor):
        authorize(actor, Action.REVIEW_CONFIGURATIONS)
        return self.db.scalars(
            select(Configuration).where(Configuration.status == ConfigurationStatus.SUBMITTED.value)
            .order_by(Configuration.updated_at.asc())
        ).all()

    # Editing

    def create(self, data: ConfigurationCreate, actor: Actor) -> Configuration:
        try:
            items, total = self._price_components(data.components)
        except ShopError:
            self.db.rollback()
            raise
        config = Configuration(
            user_id=actor.user_id,
            name=data.name,
            description=data.description,
            category=data.category,
            status=ConfigurationStatus.DRAFT.value,
            total_price=total,
            components=items,
        )
        self.db.add(config)
        self._commit("creation")
        self.db.refresh(config)
        return config

    def update(self, configuration_id: str, data: ConfigurationUpdate, actor: Actor) -> Configuration:
        """Edit fields and components; the total is always recomputed from the catalog."""
        try:
            config = self._load(configuration_id)
            authorize(actor, Action.EDIT_CONFIGURATION, config.user_id)
            if config.is_public:
                raise IllegalTransition("configuration", "PUBLISHED", "edit")
            if not actor.is_staff and config.status != ConfigurationStatus.DRAFT.value:
                raise IllegalTransition("configuration", config.status, "edit")
            changes = data.model_dump(exclude_unset=True)
            for key in ("name", "description", "category"):
                if key in changes and changes[key] is not None:
                    setattr(config, key, changes[key])
            if data.components is not None:
                items, total = self._price_components(data.components)
                config.components = items
                config.total_price = total
        except ShopError:
            self.db.rollback()
            raise
        self._commit("update")
        self.db.refresh(config)
        return config

    def delete(self, configuration_id: str, actor: Actor) -> None:
        try:
            config = self._load(configuration_id)
            authorize(actor, Action.DELETE_CONFIGURATION, config.user_id)
            if actor.role != Role.ADMIN and config.status != ConfigurationStatus.DRAFT.value:
                raise IllegalTransition("configuration", config.status, "delete")
            in_orders = self.db.scalar(
                select(func.count()).select_from(OrderItem).where(
                    OrderItem.product_type == ProductType.CONFIGURATION.value,
                    OrderItem.product_id == config.id,
                )
            )
            if in_orders:
                raise ValidationFailed("Cannot delete configuration because it is used in orders")
        except ShopError:
            self.db.rollback()
            raise
        self.db.delete(config)
        self._commit("deletion")

    # Approval workflow

    def submit(self, configuration_id: str, actor: Actor, meta: Optional[RequestMeta] = None) -> Configuration:
        return self._transition(configuration_id, "submit", actor, Action.SUBMIT_CONFIGURATION, meta)

    def approve(self, configuration_id: str, actor: Actor, meta: Optional[RequestMeta] = None) -> Configuration:
        return self._transition(configuration_id, "approve", actor, Action.APPROVE_CONFIGURATION, meta)

    def reject(self, configuration_id: str, actor: Actor, reason: str,
               meta: Optional[RequestMeta] = None) -> Configuration:
        if not reason or not reason.strip():
            raise ValidationFailed("A rejection reason is required")
        return self._transition(configuration_id, "reject", actor, Action.REJECT_CONFIGURATION, meta,
                                reason=reason.strip())

    def publish(self, configuration_id: str, actor: Actor, data: Optional[PublishRequest] = None,
                meta: Optional[RequestMeta] = None) -> Configuration:
        return self._transition(configuration_id, "publish", actor, Action.PUBLISH_CONFIGURATION, meta,
                                listing=data)

    def _transition(self, configuration_id: str, action: str, actor: Actor, permission: Action,
                    meta: Optional[RequestMeta], reason: Optional[str] = None,
                    listing: Optional[PublishRequest] = None) -> Configuration:
        try:
            config = self.db.scalars(
                select(Configuration).where(Configuration.id == configuration_id).with_for_update()
                .execution_options(populate_existing=True)
            ).one_or_none()
            if config is None:
                if not actor.is_staff:
                    raise Forbidden("Insufficient permissions")
                raise NotFound("Configuration not found")
            authorize(actor, permission, config.user_id)
            previous = config.status
            target = next_configuration_status(config.status, action, config.is_public)
            details = {"previousStatus": previous}
            if target is None:
                config.is_public = True
                config.is_template = True
                if listing is not None:
                    for key, value in listing.model_dump(exclude_unset=True).items():
                        if value is not None:
                            setattr(config, key, value)
                details["isPublic"] = True
            else:
                config.status = target.value
                details["status"] = target.value
            if reason is not None:
                config.rejection_reason = reason
                details["reason"] = reason
            record_audit(self.db, action.upper(), "CONFIGURATION", config.id, details,
                         user_id=actor.user_id, meta=meta)
        except ShopError:
            self.db.rollback()
            raise
        self._commit(action)
        self.db.refresh(config)
        logger.info(f"Configuration {configuration_id} {action} by {actor.role.value} {actor.user_id}")
        return config
