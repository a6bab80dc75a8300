"""Allowed status transitions for orders and configurations."""

from typing import Optional
from .models import OrderStatus, ConfigurationStatus
from .errors import IllegalTransition

# Monotonic, except PENDING -> CANCELLED
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}

CONFIGURATION_TRANSITIONS = {
    (ConfigurationStatus.DRAFT, "submit"): ConfigurationStatus.SUBMITTED,
    (ConfigurationStatus.SUBMITTED, "approve"): ConfigurationStatus.APPROVED,
    (ConfigurationStatus.SUBMITTED, "reject"): ConfigurationStatus.REJECTED,
}

CONFIGURATION_ACTIONS = ("submit", "approve", "reject", "publish")

def check_order_transition(current: str, target: str) -> OrderStatus:
    current_status, target_status = OrderStatus(current), OrderStatus(target)
    if target_status not in ORDER_TRANSITIONS[current_status]:
        raise IllegalTransition("order", current_status.value, target_status.value,
                                f"Cannot move order from {current_status.value} to {target_status.value}")
    return target_status

def next_configuration_status(current: str, action: str, is_public: bool = False) -> Optional[ConfigurationStatus]:
    """Return the status after ``action``, or None when the status stays (publish).

    Raises IllegalTransition for every pair outside the table.
    """
    current_status = ConfigurationStatus(current)
    if action == "publish":
        if current_status != ConfigurationStatus.APPROVED or is_public:
            state = "PUBLISHED" if is_public else current_status.value
            raise IllegalTransition("configuration", state, action)
        return None
    target = CONFIGURATION_TRANSITIONS.get((current_status, action))
    if target is None:
        raise IllegalTransition("configuration", current_status.value, action)
    return target
