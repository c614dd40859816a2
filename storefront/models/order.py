"""
Order document model.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront.models.base import MongoBaseModel, utc_now


class OrderStatus(str, Enum):
    """Lifecycle of an order."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class _Camel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProductSnapshot(_Camel):
    """Copy of the product as it was when ordered."""

    id: str = Field(..., alias="_id")
    name: str
    price: float
    images: list[dict[str, Any]] = Field(default_factory=list)
    brand: str = ""
    category: str = ""
    subcategory: str = ""


class OrderItem(_Camel):
    product_id: str
    product: ProductSnapshot
    quantity: int = Field(..., ge=1, le=999)
    selected_options: dict[str, Any] = Field(default_factory=dict)
    available_branches: list[str] = Field(default_factory=list)
    item_total: float


class CustomerInfo(_Camel):
    full_name: str = ""
    email: str
    phone: str = ""
    address: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = "Bangladesh"


class PaymentInfo(_Camel):
    """Stored payment details; raw card numbers are never persisted."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    method: str


class OrderTotals(_Camel):
    subtotal: float
    tax: float = 0.0
    delivery_charge: float = 0.0
    discount: float = 0.0
    total: float
    item_count: int
    total_quantity: int


class OrderHistoryEntry(_Camel):
    status: OrderStatus
    timestamp: datetime = Field(default_factory=utc_now)
    note: str = ""
    updated_by: str | None = None
    updated_by_role: str | None = None


class OrderDoc(MongoBaseModel):
    """
    MongoDB document for a customer order.

    Collection: orders
    """

    order_id: str = Field(..., description="Public order number (VWV...)")
    status: OrderStatus = OrderStatus.PENDING
    order_type: str = Field("registered", description="'guest' or 'registered'")

    items: list[OrderItem]
    customer_info: CustomerInfo
    payment_info: PaymentInfo
    shipping_address: dict[str, Any] = Field(default_factory=dict)
    order_notes: str = ""
    available_branches: list[str] = Field(default_factory=list)
    totals: OrderTotals

    order_history: list[OrderHistoryEntry] = Field(default_factory=list)
    tracking_info: str | None = None
    delivery_date: datetime | None = None
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None

    created_by: str | None = None
    created_by_role: str | None = None
    created_by_email: str | None = None
    updated_by: str | None = None
    updated_by_role: str | None = None
    client_ip: str | None = None
    user_agent: str | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
