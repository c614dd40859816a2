"""
Repository for user profiles and the audit log.
"""

import re
from typing import Any

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database

from storefront.models import AuditLogDoc, UserDoc, utc_now


class UserRepository:
    """Repository for user CRUD operations."""

    def __init__(self, db: Database[dict[str, Any]]):
        self.collection: Collection[dict[str, Any]] = db["user"]

    def get_by_email(self, email: str) -> UserDoc | None:
        doc = self.collection.find_one({"email": {"$regex": f"^{re.escape(email)}$", "$options": "i"}})
        if doc:
            return UserDoc.from_mongo(doc)
        return None

    def get_by_id(self, user_id: ObjectId) -> UserDoc | None:
        doc = self.collection.find_one({"_id": user_id})
        if doc:
            return UserDoc.from_mongo(doc)
        return None

    def list_users(self, skip: int = 0, limit: int = 50) -> list[UserDoc]:
        cursor = self.collection.find({}).sort("createdAt", DESCENDING).skip(skip).limit(limit)
        return [UserDoc.from_mongo(doc) for doc in cursor]

    def count(self) -> int:
        return self.collection.count_documents({})

    def create(self, user: UserDoc) -> str:
        result = self.collection.insert_one(user.to_mongo())
        return str(result.inserted_id)

    def update(self, user_id: ObjectId, fields: dict[str, Any]) -> UserDoc | None:
        result = self.collection.update_one(
            {"_id": user_id},
            {"$set": {**fields, "updatedAt": utc_now()}},
        )
        if result.matched_count == 0:
            return None
        return self.get_by_id(user_id)

    def delete(self, user_id: ObjectId) -> bool:
        result = self.collection.delete_one({"_id": user_id})
        return result.deleted_count > 0

    @staticmethod
    def create_indexes(collection: Collection[dict[str, Any]]) -> list[str]:
        """Create indexes for the users collection."""
        return [
            collection.create_index([("email", ASCENDING)], unique=True),
            collection.create_index([("role", ASCENDING)]),
        ]


class AuditLogRepository:
    """Append-only audit log."""

    def __init__(self, db: Database[dict[str, Any]]):
        self.collection: Collection[dict[str, Any]] = db["audit_logs"]

    def log(self, entry: AuditLogDoc) -> str:
        result = self.collection.insert_one(entry.to_mongo())
        return str(result.inserted_id)

    def recent(self, action: str | None = None, limit: int = 100) -> list[AuditLogDoc]:
        query: dict[str, Any] = {"action": action} if action else {}
        cursor = self.collection.find(query).sort("timestamp", DESCENDING).limit(limit)
        return [AuditLogDoc.from_mongo(doc) for doc in cursor]

    @staticmethod
    def create_indexes(collection: Collection[dict[str, Any]]) -> list[str]:
        """Create indexes for the audit_logs collection."""
        return [
            collection.create_index([("action", ASCENDING)]),
            collection.create_index([("timestamp", DESCENDING)]),
        ]
