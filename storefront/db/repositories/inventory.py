"""
Repositories for sales and stock requisitions.
"""

from typing import Any

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database

from storefront.models import RequisitionDoc, RequisitionStatus, SaleDoc, utc_now


class SaleRepository:
    """Repository for recorded sales."""

    def __init__(self, db: Database[dict[str, Any]]):
        self.collection: Collection[dict[str, Any]] = db["sales"]

    def create(self, sale: SaleDoc) -> str:
        result = self.collection.insert_one(sale.to_mongo())
        return str(result.inserted_id)

    def exists(self, sale_id: str) -> bool:
        return self.collection.count_documents({"saleId": sale_id}, limit=1) > 0

    def find(self, query: dict[str, Any], skip: int = 0, limit: int = 50) -> list[SaleDoc]:
        cursor = (
            self.collection.find(query)
            .sort([("createdAt", DESCENDING), ("_id", DESCENDING)])
            .skip(skip)
            .limit(limit)
        )
        return [SaleDoc.from_mongo(doc) for doc in cursor]

    def count(self, query: dict[str, Any]) -> int:
        return self.collection.count_documents(query)

    @staticmethod
    def create_indexes(collection: Collection[dict[str, Any]]) -> list[str]:
        """Create indexes for the sales collection."""
        return [
            collection.create_index([("saleId", ASCENDING)], unique=True),
            collection.create_index([("branch", ASCENDING), ("createdAt", DESCENDING)]),
            collection.create_index([("paymentType", ASCENDING)]),
            collection.create_index([("createdAt", DESCENDING)]),
        ]


class RequisitionRepository:
    """Repository for stock requisitions between branches."""

    def __init__(self, db: Database[dict[str, Any]]):
        self.collection: Collection[dict[str, Any]] = db["requisitions"]

    def create(self, requisition: RequisitionDoc) -> str:
        result = self.collection.insert_one(requisition.to_mongo())
        return str(result.inserted_id)

    def get(self, requisition_id: ObjectId) -> RequisitionDoc | None:
        doc = self.collection.find_one({"_id": requisition_id})
        if doc:
            return RequisitionDoc.from_mongo(doc)
        return None

    def find(self, query: dict[str, Any], limit: int = 50) -> list[RequisitionDoc]:
        cursor = self.collection.find(query).sort([("createdAt", DESCENDING), ("_id", DESCENDING)]).limit(limit)
        return [RequisitionDoc.from_mongo(doc) for doc in cursor]

    def count(self, query: dict[str, Any]) -> int:
        return self.collection.count_documents(query)

    def last_number(self, prefix: str) -> str | None:
        """Highest requisition number starting with ``prefix``."""
        doc = self.collection.find_one(
            {"requisitionNumber": {"$regex": f"^{prefix}"}},
            sort=[("requisitionNumber", DESCENDING)],
        )
        return doc.get("requisitionNumber") if doc else None

    def transition(
        self,
        requisition_id: ObjectId,
        expected: RequisitionStatus,
        fields: dict[str, Any],
    ) -> RequisitionDoc | None:
        """Set fields only while the requisition is still in ``expected``."""
        doc = self.collection.find_one_and_update(
            {"_id": requisition_id, "status": expected.value},
            {"$set": {**fields, "updatedAt": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
        if doc:
            return RequisitionDoc.from_mongo(doc)
        return None

    def delete_pending(self, requisition_id: ObjectId) -> bool:
        result = self.collection.delete_one({"_id": requisition_id, "status": RequisitionStatus.PENDING.value})
        return result.deleted_count > 0

    @staticmethod
    def create_indexes(collection: Collection[dict[str, Any]]) -> list[str]:
        """Create indexes for the requisitions collection."""
        return [
            collection.create_index([("requisitionNumber", ASCENDING)], unique=True),
            collection.create_index([("destinationBranch", ASCENDING), ("status", ASCENDING)]),
            collection.create_index([("sourceBranch", ASCENDING)]),
            collection.create_index([("createdAt", DESCENDING)]),
        ]
