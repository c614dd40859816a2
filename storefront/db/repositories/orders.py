"""
Repository for order document operations.
"""

from typing import Any

from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database

from storefront.models import OrderDoc, OrderHistoryEntry, utc_now


class OrderRepository:
    """Repository for order CRUD operations."""

    def __init__(self, db: Database[dict[str, Any]]):
        self.collection: Collection[dict[str, Any]] = db["orders"]

    def create(self, order: OrderDoc) -> str:
        result = self.collection.insert_one(order.to_mongo())
        return str(result.inserted_id)

    def exists(self, order_id: str) -> bool:
        return self.collection.count_documents({"orderId": order_id}, limit=1) > 0

    def get_by_order_id(self, order_id: str) -> OrderDoc | None:
        doc = self.collection.find_one({"orderId": order_id})
        if doc:
            return OrderDoc.from_mongo(doc)
        return None

    def get_for_customer(self, order_id: str, email: str) -> OrderDoc | None:
        doc = self.collection.find_one({"orderId": order_id, "customerInfo.email": email})
        if doc:
            return OrderDoc.from_mongo(doc)
        return None

    def find(
        self,
        query: dict[str, Any],
        sort_by: str = "createdAt",
        descending: bool = True,
        skip: int = 0,
        limit: int = 20,
    ) -> list[OrderDoc]:
        cursor = (
            self.collection.find(query)
            .sort(sort_by, DESCENDING if descending else ASCENDING)
            .skip(skip)
            .limit(limit)
        )
        return [OrderDoc.from_mongo(doc) for doc in cursor]

    def count(self, query: dict[str, Any]) -> int:
        return self.collection.count_documents(query)

    def update_status(
        self,
        order_id: str,
        fields: dict[str, Any],
        history: OrderHistoryEntry,
    ) -> OrderDoc | None:
        """Set fields and append a history entry in one write."""
        entry = history.model_dump(by_alias=True)
        entry["status"] = history.status.value
        result = self.collection.update_one(
            {"orderId": order_id},
            {
                "$set": {**fields, "updatedAt": utc_now()},
                "$push": {"orderHistory": entry},
            },
        )
        if result.matched_count == 0:
            return None
        return self.get_by_order_id(order_id)

    @staticmethod
    def create_indexes(collection: Collection[dict[str, Any]]) -> list[str]:
        """Create indexes for the orders collection."""
        indexes = [
            [("orderId", ASCENDING)],
            [("customerInfo.email", ASCENDING)],
            [("status", ASCENDING)],
            [("availableBranches", ASCENDING)],
            [("createdAt", DESCENDING)],
        ]
        created = []
        for index in indexes:
            created.append(collection.create_index(index))
        return created
