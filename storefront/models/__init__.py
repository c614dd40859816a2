"""
Pydantic models for MongoDB documents.
"""

from storefront.models.base import MongoBaseModel, as_utc, parse_object_id, utc_now
from storefront.models.category import CategoryDoc
from storefront.models.inventory import (
    PaymentPart,
    RequestedBy,
    RequisitionDoc,
    RequisitionItem,
    RequisitionPriority,
    RequisitionStatus,
    SaleCustomer,
    SaleDoc,
    SaleItem,
    SalePayment,
    SaleStatus,
    StockTransfer,
    TransferResult,
)
from storefront.models.order import (
    CustomerInfo,
    OrderDoc,
    OrderHistoryEntry,
    OrderItem,
    OrderStatus,
    OrderTotals,
    PaymentInfo,
    ProductSnapshot,
)
from storefront.models.product import (
    ProductDoc,
    ProductImage,
    ProductStatus,
    branch_from_stock_key,
    stock_key,
)
from storefront.models.promo import (
    BackgroundType,
    DisplayRules,
    FeaturedCategoryDoc,
    OfferPopupDoc,
    RecommendationDoc,
    RecommendationImage,
    SlideAlignment,
    SlideDoc,
    TriggerType,
)
from storefront.models.user import (
    CATALOG_WRITE_ROLES,
    STAFF_ROLES,
    AuditLogDoc,
    Role,
    UserDoc,
)

__all__ = [
    "MongoBaseModel",
    "parse_object_id",
    "utc_now",
    "as_utc",
    # Product
    "ProductDoc",
    "ProductImage",
    "ProductStatus",
    "stock_key",
    "branch_from_stock_key",
    # Category
    "CategoryDoc",
    # Order
    "OrderDoc",
    "OrderItem",
    "OrderStatus",
    "OrderTotals",
    "OrderHistoryEntry",
    "CustomerInfo",
    "PaymentInfo",
    "ProductSnapshot",
    # Promo
    "OfferPopupDoc",
    "DisplayRules",
    "TriggerType",
    "FeaturedCategoryDoc",
    "BackgroundType",
    "SlideDoc",
    "SlideAlignment",
    "RecommendationDoc",
    "RecommendationImage",
    # Inventory
    "SaleDoc",
    "SaleItem",
    "SaleStatus",
    "SaleCustomer",
    "SalePayment",
    "PaymentPart",
    "RequisitionDoc",
    "RequisitionItem",
    "RequisitionStatus",
    "RequisitionPriority",
    "RequestedBy",
    "StockTransfer",
    "TransferResult",
    # Users
    "UserDoc",
    "Role",
    "STAFF_ROLES",
    "CATALOG_WRITE_ROLES",
    "AuditLogDoc",
]
