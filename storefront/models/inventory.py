"""
In-store sales and inter-branch stock requisitions.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront.models.base import MongoBaseModel, utc_now


class _Camel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SaleStatus(str, Enum):
    COMPLETED = "completed"
    VOIDED = "voided"


class SaleItem(_Camel):
    product_id: str
    product_name: str
    quantity: int = Field(..., ge=1)
    unit_price: float
    total_price: float
    selected_options: dict[str, Any] = Field(default_factory=dict)


class PaymentPart(_Camel):
    method: str
    amount: float


class SalePayment(_Camel):
    methods: list[PaymentPart]
    total_paid: float
    change: float = 0.0


class SaleCustomer(_Camel):
    name: str = ""
    phone: str = ""


class SaleDoc(MongoBaseModel):
    """
    Over-the-counter sale recorded at one branch.

    Collection: sales
    """

    sale_id: str = Field(..., description="Public sale number (SALE-...)")
    branch: str
    status: SaleStatus = SaleStatus.COMPLETED
    items: list[SaleItem]
    customer: SaleCustomer = Field(default_factory=SaleCustomer)
    total_amount: float
    payment: SalePayment
    payment_type: str = Field(..., description="Single method name, or 'mixed'")
    notes: str = ""

    cashier: str | None = None
    cashier_email: str | None = None
    cashier_role: str | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class RequisitionStatus(str, Enum):
    """Lifecycle of a stock request between branches."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    IN_TRANSIT = "in-transit"
    RECEIVED = "received"


class RequisitionPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class RequisitionItem(_Camel):
    product_id: str
    product_name: str
    requested_qty: int = Field(..., ge=1)
    approved_qty: int | None = None
    notes: str = ""


class RequestedBy(_Camel):
    user_id: str | None = None
    name: str | None = None
    email: str | None = None
    branch: str | None = None


class TransferResult(_Camel):
    product_id: str
    product_name: str
    quantity: int
    error: str | None = None


class StockTransfer(_Camel):
    successful: list[TransferResult] = Field(default_factory=list)
    failed: list[TransferResult] = Field(default_factory=list)
    completed_at: datetime = Field(default_factory=utc_now)


class RequisitionDoc(MongoBaseModel):
    """
    Request to move stock from one branch to another.

    Collection: requisitions
    """

    requisition_number: str = Field(..., description="REQ-YYYYMM-NNNN")
    requested_by: RequestedBy
    source_branch: str
    destination_branch: str
    items: list[RequisitionItem]
    status: RequisitionStatus = RequisitionStatus.PENDING
    priority: RequisitionPriority = RequisitionPriority.NORMAL
    notes: str = ""

    approved_by: str | None = None
    approved_at: datetime | None = None
    delivery_date: datetime | None = None
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    shipped_by: str | None = None
    shipped_at: datetime | None = None
    received_by: str | None = None
    received_at: datetime | None = None
    stock_transfer: StockTransfer | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
