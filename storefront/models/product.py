"""
Product document model for the catalog.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront.models.base import MongoBaseModel, utc_now

STOCK_SUFFIX = "_stock"


class ProductStatus(str, Enum):
    """Visibility state of a product. Any transition is allowed."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    DRAFT = "draft"


class ProductImage(BaseModel):
    """One stored image; the first image of a product is the primary one."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    url: str
    public_id: str = Field(..., description="Media store identifier, used for deletion")
    alt: str = ""


class ProductDoc(MongoBaseModel):
    """
    MongoDB document for a sellable item.

    Collection: products
    """

    # Descriptive
    name: str
    description: str = ""
    brand: str = ""
    category: str
    subcategory: str = ""
    barcode: str | None = Field(None, description="Unique across the catalog when present")
    tags: list[str] = Field(default_factory=list)

    # Commercial
    price: float = Field(..., ge=0)
    compare_price: float | None = None

    # Vape attributes
    nicotine_strength: str | None = None
    vg_pg_ratio: str | None = None
    flavor: str = ""
    resistance: str | None = None
    wattage_range: str | None = None
    specifications: dict[str, Any] = Field(default_factory=dict)
    branch_specifications: dict[str, dict[str, Any]] = Field(default_factory=dict)

    # Inventory: "<branch>_stock" -> count
    stock: dict[str, int] = Field(default_factory=dict)

    images: list[ProductImage] = Field(default_factory=list)
    status: ProductStatus = ProductStatus.ACTIVE

    # Audit
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    created_by: str | None = None
    updated_by: str | None = None

    @property
    def primary_image(self) -> ProductImage | None:
        return self.images[0] if self.images else None

    def stock_for(self, branch: str) -> int:
        """Stock count for a branch name (0 when the branch has no entry)."""
        return int(self.stock.get(stock_key(branch), 0))

    def total_stock(self) -> int:
        return sum(int(v) for v in self.stock.values())


def stock_key(branch: str) -> str:
    """Stock map key for a branch."""
    return f"{branch}{STOCK_SUFFIX}"


def branch_from_stock_key(key: str) -> str | None:
    """Branch name encoded in a stock key, or None for foreign keys."""
    if key.endswith(STOCK_SUFFIX) and len(key) > len(STOCK_SUFFIX):
        return key[: -len(STOCK_SUFFIX)]
    return None
