"""
Repository for product document operations.
"""

import re
from typing import Any

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database

from storefront.models import ProductDoc, ProductImage, ProductStatus, utc_now
from storefront.models.product import branch_from_stock_key


def exact_ci(value: str) -> dict[str, str]:
    """Case-insensitive whole-value match on literal text."""
    return {"$regex": f"^{re.escape(value)}$", "$options": "i"}


class ProductRepository:
    """Repository for product document CRUD operations."""

    def __init__(self, db: Database[dict[str, Any]]):
        self.collection: Collection[dict[str, Any]] = db["products"]

    def create(self, product: ProductDoc) -> str:
        """Insert a new product document."""
        result = self.collection.insert_one(product.to_mongo())
        return str(result.inserted_id)

    def get_by_id(self, product_id: ObjectId, eligibility: dict[str, Any] | None = None) -> ProductDoc | None:
        """Get a product by _id, optionally restricted by an eligibility filter."""
        query: dict[str, Any] = {"_id": product_id}
        if eligibility:
            query = {"$and": [query, eligibility]}
        doc = self.collection.find_one(query)
        if doc:
            return ProductDoc.from_mongo(doc)
        return None

    def get_by_barcode(self, barcode: str, eligibility: dict[str, Any] | None = None) -> ProductDoc | None:
        """Exact barcode match first, then a case-insensitive whole-value match."""
        for condition in ({"barcode": barcode}, {"barcode": exact_ci(barcode)}):
            query: dict[str, Any] = condition
            if eligibility:
                query = {"$and": [condition, eligibility]}
            doc = self.collection.find_one(query)
            if doc:
                return ProductDoc.from_mongo(doc)
        return None

    def barcode_taken(self, barcode: str, exclude_id: ObjectId | None = None) -> bool:
        """Check whether another product already carries this barcode."""
        query: dict[str, Any] = {"barcode": barcode}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        return self.collection.count_documents(query, limit=1) > 0

    def find(
        self,
        query: dict[str, Any],
        skip: int = 0,
        limit: int = 50,
    ) -> list[ProductDoc]:
        """Find products, newest first."""
        cursor = (
            self.collection.find(query)
            .sort([("createdAt", DESCENDING), ("_id", DESCENDING)])
            .skip(skip)
            .limit(limit)
        )
        return [ProductDoc.from_mongo(doc) for doc in cursor]

    def count(self, query: dict[str, Any] | None = None) -> int:
        return self.collection.count_documents(query or {})

    def count_in_taxonomy(self, category: str, subcategory: str | None = None) -> int:
        """Count products filed under a category (and subcategory), ignoring case."""
        query: dict[str, Any] = {"category": exact_ci(category)}
        if subcategory is not None:
            query["subcategory"] = exact_ci(subcategory)
        return self.collection.count_documents(query)

    def stock_branches(self) -> list[str]:
        """Branch names found in the stock maps of active products."""
        branches: set[str] = set()
        cursor = self.collection.find({"status": ProductStatus.ACTIVE.value}, {"stock": 1})
        for doc in cursor:
            for key in (doc.get("stock") or {}):
                branch = branch_from_stock_key(key)
                if branch:
                    branches.add(branch)
        return sorted(branches)

    def update_fields(self, product_id: ObjectId, updates: dict[str, Any]) -> bool:
        """Set fields on a product. Returns False when the product is gone."""
        updates = {**updates, "updatedAt": utc_now()}
        result = self.collection.update_one({"_id": product_id}, {"$set": updates})
        return result.matched_count > 0

    def move_stock(self, product_id: ObjectId, deltas: dict[str, int], updated_by: str | None) -> bool:
        """
        Apply stock deltas keyed by ``<branch>_stock`` in one conditional write.

        Fails without writing when a decrement would take its count below zero.
        """
        query: dict[str, Any] = {"_id": product_id}
        for key, delta in deltas.items():
            if delta < 0:
                query[f"stock.{key}"] = {"$gte": -delta}
        result = self.collection.update_one(
            query,
            {
                "$inc": {f"stock.{key}": delta for key, delta in deltas.items()},
                "$set": {"updatedAt": utc_now(), "updatedBy": updated_by},
            },
        )
        return result.matched_count > 0

    def push_images(self, product_id: ObjectId, images: list[ProductImage], updated_by: str | None) -> bool:
        """Append images to a product's image list."""
        result = self.collection.update_one(
            {"_id": product_id},
            {
                "$push": {"images": {"$each": [img.model_dump(by_alias=True) for img in images]}},
                "$set": {"updatedAt": utc_now(), "updatedBy": updated_by},
            },
        )
        return result.matched_count > 0

    def pull_image(self, product_id: ObjectId, public_id: str, updated_by: str | None) -> bool:
        """Remove one image entry by its storage id."""
        result = self.collection.update_one(
            {"_id": product_id},
            {
                "$pull": {"images": {"publicId": public_id}},
                "$set": {"updatedAt": utc_now(), "updatedBy": updated_by},
            },
        )
        return result.matched_count > 0

    def delete(self, product_id: ObjectId) -> bool:
        result = self.collection.delete_one({"_id": product_id})
        return result.deleted_count > 0

    def iter_all(self, query: dict[str, Any] | None = None):
        """Iterate every product matching a query (reporting)."""
        for doc in self.collection.find(query or {}).sort("name", ASCENDING):
            yield ProductDoc.from_mongo(doc)

    @staticmethod
    def create_indexes(collection: Collection[dict[str, Any]]) -> list[str]:
        """Create indexes for the products collection.

        Barcode uniqueness is enforced at application level.
        """
        indexes = [
            [("barcode", ASCENDING)],
            [("category", ASCENDING)],
            [("subcategory", ASCENDING)],
            [("status", ASCENDING)],
            [("createdAt", DESCENDING)],
            [("brand", ASCENDING)],
        ]
        created = []
        for index in indexes:
            name = collection.create_index(index)
            created.append(name)

        return created
