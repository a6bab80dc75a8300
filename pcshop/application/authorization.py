"""Single authorization predicate for every role-gated operation."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pcshop.domain.errors import Forbidden
from pcshop.domain.models import Role

@dataclass(frozen=True)
class Actor:
    """Verified identity supplied by the auth provider for one request."""
    user_id: str
    role: Role

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

class Action(str, Enum):
    VIEW_ORDER = "view_order"
    CANCEL_ORDER = "cancel_order"
    UPDATE_ORDER_STATUS = "update_order_status"
    VIEW_CONFIGURATION = "view_configuration"
    EDIT_CONFIGURATION = "edit_configuration"
    SUBMIT_CONFIGURATION = "submit_configuration"
    DELETE_CONFIGURATION = "delete_configuration"
    REVIEW_CONFIGURATIONS = "review_configurations"
    APPROVE_CONFIGURATION = "approve_configuration"
    REJECT_CONFIGURATION = "reject_configuration"
    PUBLISH_CONFIGURATION = "publish_configuration"
    MANAGE_STOCK = "manage_stock"
    VIEW_AUDIT_LOG = "view_audit_log"

STAFF_ROLES = frozenset({Role.SPECIALIST, Role.ADMIN})

OWNER_ONLY = frozenset({Action.CANCEL_ORDER, Action.SUBMIT_CONFIGURATION})
OWNER_OR_STAFF = frozenset({Action.VIEW_ORDER, Action.VIEW_CONFIGURATION, Action.EDIT_CONFIGURATION})
OWNER_OR_ADMIN = frozenset({Action.DELETE_CONFIGURATION})
STAFF_ONLY = frozenset({
    Action.REVIEW_CONFIGURATIONS,
    Action.APPROVE_CONFIGURATION,
    Action.REJECT_CONFIGURATION,
    Action.PUBLISH_CONFIGURATION,
})
ADMIN_ONLY = frozenset({Action.UPDATE_ORDER_STATUS, Action.MANAGE_STOCK, Action.VIEW_AUDIT_LOG})

def is_authorized(role: Role, actor_id: Optional[str], resource_owner_id: Optional[str], action: Action) -> bool:
    role = Role(role)
    is_owner = actor_id is not None and resource_owner_id is not None and actor_id == resource_owner_id
    if action in OWNER_ONLY:
        return is_owner
    if action in OWNER_OR_STAFF:
        return is_owner or role in STAFF_ROLES
    if action in OWNER_OR_ADMIN:
        return is_owner or role == Role.ADMIN
    if action in STAFF_ONLY:
        return role in STAFF_ROLES
    if action in ADMIN_ONLY:
        return role == Role.ADMIN
    return False

def authorize(actor: Actor, action: Action, resource_owner_id: Optional[str] = None) -> None:
    if not is_authorized(actor.role, actor.user_id, resource_owner_id, action):
        raise Forbidden("Insufficient permissions")
