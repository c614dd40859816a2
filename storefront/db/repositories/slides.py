"""
Repository for home page hero slides.
"""

from typing import Any

from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.database import Database

from storefront.models import SlideDoc, utc_now


class SlideRepository:
    """Repository for slide CRUD operations."""

    def __init__(self, db: Database[dict[str, Any]]):
        self.collection: Collection[dict[str, Any]] = db["sliders"]

    def list_slides(self, include_inactive: bool = False) -> list[SlideDoc]:
        query: dict[str, Any] = {} if include_inactive else {"isActive": True}
        cursor = self.collection.find(query).sort([("order", ASCENDING), ("createdAt", ASCENDING)])
        return [SlideDoc.from_mongo(doc) for doc in cursor]

    def get(self, slide_id: str) -> SlideDoc | None:
        doc = self.collection.find_one({"slideId": slide_id})
        if doc:
            return SlideDoc.from_mongo(doc)
        return None

    def count(self) -> int:
        return self.collection.count_documents({})

    def create(self, slide: SlideDoc) -> str:
        result = self.collection.insert_one(slide.to_mongo())
        return str(result.inserted_id)

    def update(self, slide_id: str, fields: dict[str, Any]) -> bool:
        result = self.collection.update_one(
            {"slideId": slide_id},
            {"$set": {**fields, "updatedAt": utc_now()}},
        )
        return result.matched_count > 0

    def set_orders(self, orders: dict[str, int]) -> int:
        matched = 0
        for slide_id, order in orders.items():
            if self.update(slide_id, {"order": order}):
                matched += 1
        return matched

    def delete(self, slide_id: str) -> bool:
        result = self.collection.delete_one({"slideId": slide_id})
        return result.deleted_count > 0

    def next_order(self) -> int:
        doc = self.collection.find_one({}, sort=[("order", -1)])
        return int(doc.get("order", 0)) + 1 if doc else 1

    @staticmethod
    def create_indexes(collection: Collection[dict[str, Any]]) -> list[str]:
        """Create indexes for the sliders collection."""
        return [
            collection.create_index([("slideId", ASCENDING)], unique=True),
            collection.create_index([("isActive", ASCENDING), ("order", ASCENDING)]),
        ]
