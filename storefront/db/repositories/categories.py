"""
Repository for custom category rows.
"""

from typing import Any

from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.database import Database

from storefront.models import CategoryDoc, utc_now


class CategoryRepository:
    """Repository for category override CRUD operations."""

    def __init__(self, db: Database[dict[str, Any]]):
        self.collection: Collection[dict[str, Any]] = db["categories"]

    def list_all(self) -> list[CategoryDoc]:
        """All rows, tombstones included."""
        cursor = self.collection.find({}).sort("name", ASCENDING)
        return [CategoryDoc.from_mongo(doc) for doc in cursor]

    def get_by_name(self, name: str) -> CategoryDoc | None:
        doc = self.collection.find_one({"name": name.strip().upper()})
        if doc:
            return CategoryDoc.from_mongo(doc)
        return None

    def create(self, category: CategoryDoc) -> str:
        result = self.collection.insert_one(category.to_mongo())
        return str(result.inserted_id)

    def replace_row(self, name: str, subcategories: list[str], deleted: bool = False) -> None:
        """Create or overwrite the row for a category name."""
        now = utc_now()
        self.collection.update_one(
            {"name": name},
            {
                "$set": {"subcategories": subcategories, "deleted": deleted, "updatedAt": now},
                "$setOnInsert": {"createdAt": now},
            },
            upsert=True,
        )

    def add_subcategory(self, name: str, subcategory: str) -> bool:
        result = self.collection.update_one(
            {"name": name},
            {"$addToSet": {"subcategories": subcategory}, "$set": {"updatedAt": utc_now()}},
        )
        return result.matched_count > 0

    def pull_subcategory(self, name: str, subcategory: str) -> bool:
        result = self.collection.update_one(
            {"name": name},
            {"$pull": {"subcategories": subcategory}, "$set": {"updatedAt": utc_now()}},
        )
        return result.matched_count > 0

    def tombstone(self, name: str) -> bool:
        """Hide a built-in category while keeping its row."""
        result = self.collection.update_one(
            {"name": name},
            {"$set": {"deleted": True, "updatedAt": utc_now()}},
        )
        return result.matched_count > 0

    def delete(self, name: str) -> bool:
        result = self.collection.delete_one({"name": name})
        return result.deleted_count > 0

    @staticmethod
    def create_indexes(collection: Collection[dict[str, Any]]) -> list[str]:
        """Create indexes for the categories collection."""
        return [collection.create_index([("name", ASCENDING)], unique=True)]
