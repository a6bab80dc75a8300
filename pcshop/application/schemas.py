from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pcshop.domain.models import ProductType, OrderStatus, StockKind

class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire; accepts either on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

# Stock

class StockItemCreate(CamelModel):
    id: str = Field(min_length=1, max_length=64)
    kind: StockKind = StockKind.COMPONENT
    name: str = Field(min_length=1, max_length=200)
    category: Optional[str] = None
    price: float = Field(ge=0)
    quantity: int = Field(ge=0)

class StockItemUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    quantity: Optional[int] = Field(default=None, ge=0)

class StockItemRead(CamelModel):
    id: str
    kind: str
    name: str
    category: Optional[str] = None
    price: float
    quantity: int

# Orders

class CartItem(CamelModel):
    id: str = Field(min_length=1)
    type: ProductType
    quantity: int = Field(ge=1)
    # Informational only; the catalog price is what gets charged
    price: Optional[float] = None
    name: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _upper_type(cls, value):
        return value.upper() if isinstance(value, str) else value

class ShippingAddress(CamelModel):
    full_name: str = Field(min_length=1)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: str
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    postal_code: str
    country: str = Field(min_length=1)

class OrderCreate(CamelModel):
    items: list[CartItem] = Field(min_length=1)
    shipping_address: ShippingAddress
    payment_method: Literal["card", "cash"]
    shipping_method: str = Field(default="standard", min_length=1)
    promo_code: Optional[str] = None
    locale: str = "en"

    @field_validator("payment_method", mode="before")
    @classmethod
    def _lower_method(cls, value):
        return value.lower() if isinstance(value, str) else value

    @field_validator("promo_code")
    @classmethod
    def _normalize_promo(cls, value):
        if value is None:
            return None
        return value.strip().upper() or None

class OrderCreated(CamelModel):
    order_id: str
    payment_method: str
    status: str
    subtotal: float
    shipping_cost: float
    discount: float
    total_amount: float

class OrderItemRead(CamelModel):
    product_id: str
    product_type: str
    name: str
    quantity: int
    price: float

class OrderRead(CamelModel):
    id: str
    user_id: Optional[str] = None
    status: str
    subtotal: float
    shipping_cost: float
    discount: float
    promo_code: Optional[str] = None
    total_amount: float
    payment_method: str
    shipping_method: str
    shipping_address: str
    locale: str
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemRead]

class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = (total + limit - 1) // limit
        return cls(page=page, limit=limit, total=total, total_pages=total_pages,
                   has_next_page=page < total_pages, has_prev_page=page > 1)

class OrderPage(CamelModel):
    orders: list[OrderRead]
    pagination: Pagination

class OrderAction(CamelModel):
    id: str
    action: Literal["cancel"]
    reason: Optional[str] = None

class OrderActionResult(CamelModel):
    id: str
    status: str
    message: str

class OrderStatusUpdate(CamelModel):
    status: OrderStatus

# Payment webhook

class PaymentEventMetadata(CamelModel):
    order_id: Optional[str] = None

class PaymentEvent(CamelModel):
    id: Optional[str] = None
    event_type: str
    metadata: PaymentEventMetadata = Field(default_factory=PaymentEventMetadata)
    # Minor currency units, as the gateway reports them
    amount: Optional[Decimal] = None

class WebhookAck(CamelModel):
    received: bool = True

# Configurations

class ConfigItemInput(CamelModel):
    component_id: str
    quantity: int = Field(default=1, ge=1)

class ConfigurationCreate(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None
    components: list[ConfigItemInput] = Field(min_length=1)

class ConfigurationUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None
    components: Optional[list[ConfigItemInput]] = Field(default=None, min_length=1)

class RejectRequest(CamelModel):
    reason: str = Field(min_length=1)

class PublishRequest(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None

class ConfigItemRead(CamelModel):
    component_id: str
    quantity: int

class ConfigurationRead(CamelModel):
    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    status: str
    is_public: bool
    is_template: bool
    total_price: float
    rejection_reason: Optional[str] = None
    components: list[ConfigItemRead]
    created_at: datetime
    updated_at: datetime

# Audit

class AuditLogRead(CamelModel):
    id: int
    user_id: Optional[str] = None
    action: str
    entity_type: str
    entity_id: str
    details: dict
    ip_address: str
    user_agent: str
    created_at: datetime

class AuditPage(CamelModel):
    logs: list[AuditLogRead]
    pagination: Pagination
