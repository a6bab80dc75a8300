from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Protocol

from sqlalchemy import select, update, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pcshop.domain.models import Order, OrderItem, OrderStatus, PaymentMethod, ProductType, Configuration
from pcshop.domain.errors import ShopError, ValidationFailed, InsufficientStock, IllegalTransition, NotFound
from pcshop.domain.transitions import check_order_transition
from pcshop.core_settings import get_settings
from pcshop.core.logging_config import get_logger
from .authorization import Actor, Action, authorize, is_authorized
from .audit import record_audit, RequestMeta
from .inventory import InventoryService
from .schemas import OrderCreate, CartItem

logger = get_logger(__name__)

CENTS = Decimal("0.01")

class ReceiptNotifier(Protocol):
    def send_receipt(self, order_id: str, locale: str) -> None: ...

class OrderService:
    def __init__(self, db: Session):
        self.db = db
        self.inventory = InventoryService(db)

    # Creation

    def create_with_stock_reservation(
        self,
        data: OrderCreate,
        actor: Optional[Actor] = None,
        notifier: Optional[ReceiptNotifier] = None,
        meta: Optional[RequestMeta] = None,
    ) -> Order:
        """Reserve stock and create the order in one transaction.

        Stock rows are locked in (type, id) order so concurrent carts never
        wait on each other's locks in a cycle. Raises InsufficientStock naming
        the first short item in that order; nothing is written in that case.
        CASH orders get a receipt after commit.
        """
        try:
            shipping_method = data.shipping_method.upper()
            shipping_cost = self._shipping_cost(shipping_method)
            lines = [self._build_line(product_type, product_id, quantity, actor)
                     for (product_type, product_id), quantity in self._merge_cart(data.items)]
            subtotal = sum((line.price * line.quantity for line in lines), Decimal("0.00"))
            discount = self._discount(data.promo_code, subtotal)
            address = data.shipping_address
            order = Order(
                user_id=actor.user_id if actor else None,
                is_guest_order=actor is None,
                status=OrderStatus.PENDING.value,
                subtotal=subtotal,
                shipping_cost=shipping_cost,
                discount=discount,
                promo_code=data.promo_code if discount else None,
                total_amount=subtotal - discount + shipping_cost,
                payment_method=data.payment_method.upper(),
                shipping_method=shipping_method,
                shipping_name=address.full_name,
                shipping_email=address.email,
                shipping_phone=address.phone,
                shipping_address=f"{address.address}, {address.city}, {address.country}, {address.postal_code}",
                locale=data.locale,
                items=lines,
            )
            self.db.add(order)
            self.db.flush()
            record_audit(
                self.db, "CREATE", "ORDER", order.id,
                {"totalAmount": str(order.total_amount), "subtotal": str(subtotal),
                 "shippingCost": str(shipping_cost), "discount": str(discount),
                 "promoCode": order.promo_code, "paymentMethod": order.payment_method,
                 "items": [{"productId": line.product_id, "quantity": line.quantity} for line in lines]},
                user_id=actor.user_id if actor else None, meta=meta,
            )
            self.db.commit()
        except ShopError:
            self.db.rollback()
            raise
        except SQLAlchemyError:
            self.db.rollback()
            logger.error("Order creation failed", exc_info=True)
            raise

        logger.info(
            f"Order {order.id} created",
            extra={'extra_fields': {'order_id': order.id, 'total': str(order.total_amount),
                                    'guest': order.is_guest_order}}
        )
        if order.payment_method == PaymentMethod.CASH.value and notifier is not None:
            notifier.send_receipt(order.id, order.locale)
        return order

    @staticmethod
    def _merge_cart(items: list[CartItem]) -> list[tuple[tuple[ProductType, str], int]]:
        """Sum quantities per item, in a fixed (type, id) order."""
        merged: dict = {}
        for item in items:
            key = (item.type, item.id)
            merged[key] = merged.get(key, 0) + item.quantity
        return sorted(merged.items(), key=lambda entry: (entry[0][0].value, entry[0][1]))

    @staticmethod
    def _shipping_cost(shipping_method: str) -> Decimal:
        rates = get_settings().SHIPPING_RATES
        if shipping_method not in rates:
            raise ValidationFailed(f"Unknown shipping method {shipping_method}",
                                   {"shippingMethods": sorted(rates)})
        return Decimal(rates[shipping_method]).quantize(CENTS)

    @staticmethod
    def _discount(promo_code: Optional[str], subtotal: Decimal) -> Decimal:
        if not promo_code:
            return Decimal("0.00")
        percentage = get_settings().PROMO_CODES.get(promo_code)
        if percentage is None:
            raise ValidationFailed(f"Promo code {promo_code} is not valid")
        discount = (subtotal * Decimal(percentage) / 100).quantize(CENTS, rounding=ROUND_HALF_UP)
        return min(discount, subtotal)

    def _build_line(self, product_type: ProductType, product_id: str, quantity: int,
                    actor: Optional[Actor]) -> OrderItem:
        if product_type.is_stock_tracked:
            stock = self.inventory.lock(product_id)
            if stock is None:
                raise ValidationFailed(f"Product with ID {product_id} not found")
            if stock.quantity < quantity:
                raise InsufficientStock(product_id, quantity, stock.quantity)
            name, price = stock.name, stock.price
            self.inventory.reserve(product_id, quantity)
        else:
            config = self.db.get(Configuration, product_id)
            owned = config is not None and actor is not None and config.user_id == actor.user_id
            if config is None or not (config.is_public or owned):
                raise ValidationFailed(f"Configuration with ID {product_id} not found")
            name, price = config.name, config.total_price
        return OrderItem(product_id=product_id, product_type=product_type.value,
                         name=name, quantity=quantity, price=price)

    # Queries

    def list_for_user(self, actor: Actor, page: int = 1, limit: int = 10):
        query = select(Order).where(Order.user_id == actor.user_id)
        total = self.db.scalar(select(func.count()).select_from(query.subquery()))
        orders = self.db.scalars(
            query.order_by(Order.created_at.desc()).offset((page - 1) * limit).limit(limit)
        ).all()
        return orders, total

    def get_for_actor(self, order_id: str, actor: Actor) -> Order:
        order = self.db.get(Order, order_id)
        if order is None or not is_authorized(actor.role, actor.user_id, order.user_id, Action.VIEW_ORDER):
            raise NotFound("Order not found")
        return order

    # Status changes

    def apply_transition(self, order_id: str, current: OrderStatus, target: OrderStatus) -> bool:
        """Conditional status write; False if the order is no longer in ``current``. No commit."""
        result = self.db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == current.value)
            .values(status=target.value, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        applied = result.rowcount == 1
        cached = self.db.identity_map.get(self.db.identity_key(Order, order_id))
        if cached is not None:
            self.db.expire(cached)
        return applied

    def restock_items(self, order: Order) -> list[dict]:
        """Give every stock-tracked line back to inventory. No commit."""
        restocked = []
        for item in order.items:
            if ProductType(item.product_type).is_stock_tracked:
                if self.inventory.release(item.product_id, item.quantity):
                    restocked.append({"productId": item.product_id, "quantity": item.quantity})
        return restocked

    def cancel(self, order_id: str, actor: Actor, reason: Optional[str] = None,
               meta: Optional[RequestMeta] = None) -> Order:
        """Owner cancellation of a PENDING order with full restock."""
        try:
            order = self.db.scalars(
                select(Order).where(Order.id == order_id).with_for_update()
                .execution_options(populate_existing=True)
            ).one_or_none()
            if order is None or not is_authorized(actor.role, actor.user_id, order.user_id, Action.CANCEL_ORDER):
                raise ValidationFailed("Order not found or does not belong to the user")
            previous = order.status
            if previous != OrderStatus.PENDING.value or not self.apply_transition(
                    order.id, OrderStatus.PENDING, OrderStatus.CANCELLED):
                raise IllegalTransition("order", previous, OrderStatus.CANCELLED.value,
                                        "Only pending orders can be cancelled")
            restocked = self.restock_items(order)
            record_audit(
                self.db, "CANCEL", "ORDER", order.id,
                {"reason": reason or "User cancelled", "previousStatus": previous, "restocked": restocked},
                user_id=actor.user_id, meta=meta,
            )
            self.db.commit()
        except ShopError:
            self.db.rollback()
            raise
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Cancelling order {order_id} failed", exc_info=True)
            raise
        self.db.refresh(order)
        logger.info(f"Order {order_id} cancelled by owner")
        return order

    def update_status(self, order_id: str, status: OrderStatus, actor: Actor,
                      meta: Optional[RequestMeta] = None) -> Order:
        """Admin status change along the monotonic order table."""
        authorize(actor, Action.UPDATE_ORDER_STATUS)
        try:
            order = self.db.scalars(
                select(Order).where(Order.id == order_id).with_for_update()
                .execution_options(populate_existing=True)
            ).one_or_none()
            if order is None:
                raise NotFound("Order not found")
            previous = OrderStatus(order.status)
            target = check_order_transition(previous.value, status.value)
            if not self.apply_transition(order.id, previous, target):
                raise IllegalTransition("order", previous.value, target.value)
            details = {"previousStatus": previous.value, "status": target.value}
            if target == OrderStatus.CANCELLED:
                details["restocked"] = self.restock_items(order)
            record_audit(self.db, "UPDATE", "ORDER", order.id, details, user_id=actor.user_id, meta=meta)
            self.db.commit()
        except ShopError:
            self.db.rollback()
            raise
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Updating order {order_id} failed", exc_info=True)
            raise
        self.db.refresh(order)
        return order
