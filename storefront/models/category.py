"""
Custom category rows that override or extend the built-in taxonomy.
"""

from datetime import datetime

from pydantic import Field, field_validator

from storefront.models.base import MongoBaseModel, utc_now


class CategoryDoc(MongoBaseModel):
    """
    MongoDB document for an admin-managed category.

    Collection: categories

    A row named like a built-in category replaces the built-in subcategory
    list; ``deleted`` hides the built-in entirely.
    """

    name: str = Field(..., description="Uppercase category name")
    subcategories: list[str] = Field(default_factory=list)
    deleted: bool = False

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        return v.strip().upper()
