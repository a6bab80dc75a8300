"""Reconciles payment gateway events with order status and stock.

The gateway delivers at least once, so every event may arrive repeatedly.
Two guards make replays no-ops: processed event ids are stored with the
change they caused, and each status write only applies from PENDING.
"""

from enum import Enum
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pcshop.domain.models import Order, OrderStatus, ProcessedWebhookEvent
from pcshop.core.logging_config import get_logger
from .audit import record_audit, RequestMeta, SYSTEM_ACTOR
from .orders import OrderService, ReceiptNotifier
from .schemas import PaymentEvent

logger = get_logger(__name__)

SUCCEEDED_EVENTS = frozenset({
    "checkout_completed",
    "payment_succeeded",
    "checkout.session.completed",
    "payment_intent.succeeded",
})
FAILED_EVENTS = frozenset({
    "checkout_expired",
    "payment_failed",
    "checkout.session.expired",
    "payment_intent.payment_failed",
})

class WebhookOutcome(str, Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    UNKNOWN_ORDER = "unknown_order"

class PaymentWebhookService:
    def __init__(self, db: Session):
        self.db = db
        self.orders = OrderService(db)

    def handle(self, event: PaymentEvent, notifier: Optional[ReceiptNotifier] = None,
               meta: Optional[RequestMeta] = None) -> WebhookOutcome:
        if event.event_type in SUCCEEDED_EVENTS:
            target = OrderStatus.PROCESSING
        elif event.event_type in FAILED_EVENTS:
            target = OrderStatus.CANCELLED
        else:
            logger.info(f"Ignoring unhandled payment event type {event.event_type}")
            return WebhookOutcome.IGNORED

        if event.id and self.db.get(ProcessedWebhookEvent, event.id) is not None:
            logger.info(f"Payment event {event.id} already processed")
            return WebhookOutcome.DUPLICATE

        order_id = event.metadata.order_id
        if not order_id:
            logger.warning(f"Payment event {event.event_type} carries no orderId")
            return WebhookOutcome.IGNORED
        order = self.db.get(Order, order_id)
        if order is None:
            logger.warning(
                f"Payment event {event.event_type} for unknown order {order_id}",
                extra={'extra_fields': {'event_id': event.id, 'order_id': order_id}}
            )
            return WebhookOutcome.UNKNOWN_ORDER

        try:
            applied = self._apply(order, target, event, meta)
            if event.id:
                self.db.add(ProcessedWebhookEvent(
                    event_id=event.id, event_type=event.event_type, order_id=order.id
                ))
            self.db.commit()
        except IntegrityError:
            # Same event committed concurrently by another delivery
            self.db.rollback()
            logger.info(f"Payment event {event.id} processed concurrently")
            return WebhookOutcome.DUPLICATE
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Failed to apply payment event {event.event_type} to order {order_id}", exc_info=True)
            raise

        if not applied:
            return WebhookOutcome.ALREADY_APPLIED
        if target == OrderStatus.PROCESSING and notifier is not None:
            notifier.send_receipt(order.id, order.locale)
        return WebhookOutcome.APPLIED

    def _apply(self, order: Order, target: OrderStatus, event: PaymentEvent,
               meta: Optional[RequestMeta]) -> bool:
        previous = order.status
        if not self.orders.apply_transition(order.id, OrderStatus.PENDING, target):
            logger.info(
                f"Order {order.id} is {previous}, not applying {event.event_type}",
                extra={'extra_fields': {'event_id': event.id, 'order_id': order.id}}
            )
            return False

        amount = None if event.amount is None else str(event.amount)
        details = {"event": event.event_type, "eventId": event.id, "previousStatus": previous,
                   "status": target.value, "amount": amount}
        if target == OrderStatus.PROCESSING and event.amount is not None:
            expected = order.total_amount * 100
            if event.amount != expected:
                logger.warning(f"Order {order.id} paid {event.amount}, expected {expected}")
                details["expectedAmount"] = str(expected)
        if target == OrderStatus.CANCELLED:
            details["restocked"] = self.orders.restock_items(order)

        record_audit(self.db, "UPDATE", "ORDER", order.id, details, user_id=SYSTEM_ACTOR, meta=meta)
        logger.info(f"Order {order.id} moved {previous} -> {target.value} by {event.event_type}")
        return True
