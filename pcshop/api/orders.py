from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from pcshop.infrastructure.db import get_db
from pcshop.application.audit import RequestMeta
from pcshop.application.authorization import Actor
from pcshop.application.orders import OrderService
from pcshop.application.schemas import (
    OrderCreate, OrderCreated, OrderRead, OrderPage, OrderAction, OrderActionResult,
    OrderStatusUpdate, Pagination,
)
from .deps import get_actor, get_optional_actor, get_request_meta, get_receipt_notifier, BackgroundReceiptNotifier

router = APIRouter(prefix="/orders", tags=["orders"])
admin_router = APIRouter(prefix="/admin/orders", tags=["admin"])

@router.post("", response_model=OrderCreated, status_code=201)
def create_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    actor: Optional[Actor] = Depends(get_optional_actor),
    notifier: BackgroundReceiptNotifier = Depends(get_receipt_notifier),
    meta: RequestMeta = Depends(get_request_meta),
):
    """Checkout; guests are allowed. Stock is reserved atomically with the order."""
    order = OrderService(db).create_with_stock_reservation(payload, actor, notifier, meta)
    return OrderCreated(
        order_id=order.id,
        payment_method=payload.payment_method,
        status=order.status,
        subtotal=order.subtotal,
        shipping_cost=order.shipping_cost,
        discount=order.discount,
        total_amount=order.total_amount,
    )

@router.get("", response_model=OrderPage)
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    orders, total = OrderService(db).list_for_user(actor, page, limit)
    return OrderPage(
        orders=[OrderRead.model_validate(o) for o in orders],
        pagination=Pagination.build(page, limit, total),
    )

@router.get("/{order_id}", response_model=OrderRead)
def get_order(order_id: str, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return OrderService(db).get_for_actor(order_id, actor)

@router.patch("", response_model=OrderActionResult)
def update_order(
    payload: OrderAction,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    meta: RequestMeta = Depends(get_request_meta),
):
    """Customer-side order actions; only "cancel" is supported."""
    order = OrderService(db).cancel(payload.id, actor, payload.reason, meta)
    return OrderActionResult(id=order.id, status=order.status, message="Order cancelled successfully")

@admin_router.patch("/{order_id}", response_model=OrderRead)
def update_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    meta: RequestMeta = Depends(get_request_meta),
):
    return OrderService(db).update_status(order_id, payload.status, actor, meta)
