from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import String, ForeignKey, Numeric, DateTime, Integer, Boolean, Text, JSON, CheckConstraint, event
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
import uuid

class Base(DeclarativeBase):
    pass

def _uuid() -> str:
    return str(uuid.uuid4())

class StockKind(str, Enum):
    COMPONENT = "COMPONENT"
    PERIPHERAL = "PERIPHERAL"

class ProductType(str, Enum):
    COMPONENT = "COMPONENT"
    PERIPHERAL = "PERIPHERAL"
    CONFIGURATION = "CONFIGURATION"

    @property
    def is_stock_tracked(self) -> bool:
        return self in (ProductType.COMPONENT, ProductType.PERIPHERAL)

class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

class PaymentMethod(str, Enum):
    CARD = "CARD"
    CASH = "CASH"

class ConfigurationStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

class Role(str, Enum):
    USER = "USER"
    SPECIALIST = "SPECIALIST"
    ADMIN = "ADMIN"

class StockItem(Base):
    """A component or peripheral with a tracked stock count."""
    __tablename__ = "stock_items"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_stock_items_quantity_non_negative"),
    )
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(20), default=StockKind.COMPONENT.value)
    name: Mapped[str] = mapped_column(String(200))
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    quantity: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

class Order(Base):
    __tablename__ = "orders"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    # Null for guest checkout
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    is_guest_order: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(20), default=OrderStatus.PENDING.value, index=True)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"))
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"))
    discount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"))
    promo_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    # subtotal - discount + shipping_cost
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    payment_method: Mapped[str] = mapped_column(String(20))
    shipping_method: Mapped[str] = mapped_column(String(50))
    shipping_name: Mapped[str] = mapped_column(String(200))
    shipping_email: Mapped[str] = mapped_column(String(255))
    shipping_phone: Mapped[str] = mapped_column(String(50))
    shipping_address: Mapped[str] = mapped_column(String(500))
    locale: Mapped[str] = mapped_column(String(10), default="en")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    items: Mapped[list["OrderItem"]] = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

class OrderItem(Base):
    __tablename__ = "order_items"
    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), index=True)
    # Weak reference: a stock item or a configuration id depending on product_type
    product_id: Mapped[str] = mapped_column(String(64), index=True)
    product_type: Mapped[str] = mapped_column(String(20))
    name: Mapped[str] = mapped_column(String(200))
    quantity: Mapped[int]
    # Price snapshot at purchase time
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    order: Mapped[Order] = relationship("Order", back_populates="items")

class Configuration(Base):
    """A user-assembled PC build with its own approval lifecycle."""
    __tablename__ = "configurations"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=ConfigurationStatus.DRAFT.value, index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    is_template: Mapped[bool] = mapped_column(Boolean, default=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"))
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    components: Mapped[list["ConfigItem"]] = relationship(
        "ConfigItem", back_populates="configuration", cascade="all, delete-orphan"
    )

class ConfigItem(Base):
    __tablename__ = "config_items"
    id: Mapped[int] = mapped_column(primary_key=True)
    configuration_id: Mapped[str] = mapped_column(ForeignKey("configurations.id"), index=True)
    component_id: Mapped[str] = mapped_column(String(64))
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    configuration: Mapped[Configuration] = relationship("Configuration", back_populates="components")

class AuditLog(Base):
    """Append-only trail of order and configuration changes."""
    __tablename__ = "audit_logs"
    id: Mapped[int] = mapped_column(primary_key=True)
    # Actor id, "system" for gateway callbacks
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    action: Mapped[str] = mapped_column(String(30), index=True)
    entity_type: Mapped[str] = mapped_column(String(30), index=True)
    entity_id: Mapped[str] = mapped_column(String(64), index=True)
    details: Mapped[dict] = mapped_column(JSON, default=dict)
    ip_address: Mapped[str] = mapped_column(String(64), default="")
    user_agent: Mapped[str] = mapped_column(String(255), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

class ProcessedWebhookEvent(Base):
    """Gateway event ids already applied; the primary key rejects replays."""
    __tablename__ = "processed_webhook_events"
    event_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(100))
    order_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    processed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

@event.listens_for(AuditLog, "before_update")
@event.listens_for(AuditLog, "before_delete")
def _refuse_audit_mutation(mapper, connection, target):
    raise ValueError("audit log entries are write-once")
