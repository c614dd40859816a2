"""
Repository for featured category tiles.
"""

from typing import Any

from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.database import Database

from storefront.models import FeaturedCategoryDoc, utc_now


class FeaturedCategoryRepository:
    """Repository for featured category CRUD operations."""

    def __init__(self, db: Database[dict[str, Any]]):
        self.collection: Collection[dict[str, Any]] = db["featured_categories"]

    def list_tiles(self, include_inactive: bool = False) -> list[FeaturedCategoryDoc]:
        query: dict[str, Any] = {} if include_inactive else {"isActive": True}
        cursor = self.collection.find(query).sort([("order", ASCENDING), ("createdAt", ASCENDING)])
        return [FeaturedCategoryDoc.from_mongo(doc) for doc in cursor]

    def get(self, category_id: str) -> FeaturedCategoryDoc | None:
        doc = self.collection.find_one({"categoryId": category_id})
        if doc:
            return FeaturedCategoryDoc.from_mongo(doc)
        return None

    def create(self, tile: FeaturedCategoryDoc) -> str:
        result = self.collection.insert_one(tile.to_mongo())
        return str(result.inserted_id)

    def update(self, category_id: str, fields: dict[str, Any]) -> bool:
        result = self.collection.update_one(
            {"categoryId": category_id},
            {"$set": {**fields, "updatedAt": utc_now()}},
        )
        return result.matched_count > 0

    def set_image(self, category_id: str, field: str, url: str, public_id: str) -> bool:
        """Store an uploaded image on ``productImage`` or ``backgroundImage``."""
        return self.update(category_id, {field: url, f"{field}PublicId": public_id})

    def set_orders(self, orders: dict[str, int]) -> int:
        """Apply a new display order; returns how many tiles matched."""
        matched = 0
        for category_id, order in orders.items():
            if self.update(category_id, {"order": order}):
                matched += 1
        return matched

    def delete(self, category_id: str) -> bool:
        result = self.collection.delete_one({"categoryId": category_id})
        return result.deleted_count > 0

    def next_order(self) -> int:
        doc = self.collection.find_one({}, sort=[("order", -1)])
        return int(doc.get("order", 0)) + 1 if doc else 1

    @staticmethod
    def create_indexes(collection: Collection[dict[str, Any]]) -> list[str]:
        """Create indexes for the featured_categories collection."""
        return [
            collection.create_index([("categoryId", ASCENDING)], unique=True),
            collection.create_index([("isActive", ASCENDING), ("order", ASCENDING)]),
        ]
