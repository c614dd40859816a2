"""
Repository for singleton rows in the settings collection.
"""

from typing import Any

from pymongo import ASCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database

from storefront.models import OfferPopupDoc, RecommendationDoc, utc_now

BRANCHES_TYPE = "branches"
OFFER_POPUP_TYPE = "offerPopup"
RECOMMENDATION_TYPE = "recommendation"


class SettingsRepository:
    """Branch registry, offer popup and recommendation section storage."""

    def __init__(self, db: Database[dict[str, Any]]):
        self.collection: Collection[dict[str, Any]] = db["settings"]

    # Branches

    def get_branches(self, defaults: list[str]) -> list[str]:
        """Current branch list, seeding the defaults on first read."""
        doc = self.collection.find_one({"type": BRANCHES_TYPE})
        if doc is None:
            now = utc_now()
            self.collection.update_one(
                {"type": BRANCHES_TYPE},
                {"$setOnInsert": {"branches": list(defaults), "createdAt": now, "updatedAt": now}},
                upsert=True,
            )
            doc = self.collection.find_one({"type": BRANCHES_TYPE}) or {}
        return list(doc.get("branches") or [])

    def add_branch(self, branch: str) -> list[str]:
        doc = self.collection.find_one_and_update(
            {"type": BRANCHES_TYPE},
            {"$addToSet": {"branches": branch}, "$set": {"updatedAt": utc_now()}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return list(doc.get("branches") or [])

    def remove_branch(self, branch: str) -> list[str]:
        doc = self.collection.find_one_and_update(
            {"type": BRANCHES_TYPE},
            {"$pull": {"branches": branch}, "$set": {"updatedAt": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
        return list((doc or {}).get("branches") or [])

    # Offer popup

    def get_offer_popup(self) -> OfferPopupDoc | None:
        doc = self.collection.find_one({"type": OFFER_POPUP_TYPE})
        if doc:
            return OfferPopupDoc.from_mongo(doc)
        return None

    def save_offer_popup(self, popup: OfferPopupDoc) -> OfferPopupDoc:
        """Replace the popup row, keeping its creation stamps."""
        data = popup.to_mongo()
        data.pop("_id", None)
        created = {k: data.pop(k) for k in ("createdAt", "createdBy", "createdByEmail")}
        doc = self.collection.find_one_and_update(
            {"type": OFFER_POPUP_TYPE},
            {"$set": data, "$setOnInsert": created},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return OfferPopupDoc.from_mongo(doc)

    def update_offer_popup(self, fields: dict[str, Any]) -> OfferPopupDoc | None:
        doc = self.collection.find_one_and_update(
            {"type": OFFER_POPUP_TYPE},
            {"$set": {**fields, "updatedAt": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
        if doc:
            return OfferPopupDoc.from_mongo(doc)
        return None

    def delete_offer_popup(self) -> bool:
        result = self.collection.delete_one({"type": OFFER_POPUP_TYPE})
        return result.deleted_count > 0

    # Recommendation section

    def get_recommendation(self) -> RecommendationDoc | None:
        doc = self.collection.find_one({"type": RECOMMENDATION_TYPE})
        if doc:
            return RecommendationDoc.from_mongo(doc)
        return None

    def save_recommendation(self, section: RecommendationDoc) -> RecommendationDoc:
        """Replace the section row, keeping its creation stamps."""
        data = section.to_mongo()
        data.pop("_id", None)
        created = {k: data.pop(k) for k in ("createdAt", "createdBy")}
        doc = self.collection.find_one_and_update(
            {"type": RECOMMENDATION_TYPE},
            {"$set": data, "$setOnInsert": created},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return RecommendationDoc.from_mongo(doc)

    def update_recommendation(self, fields: dict[str, Any]) -> RecommendationDoc | None:
        doc = self.collection.find_one_and_update(
            {"type": RECOMMENDATION_TYPE},
            {"$set": {**fields, "updatedAt": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
        if doc:
            return RecommendationDoc.from_mongo(doc)
        return None

    @staticmethod
    def create_indexes(collection: Collection[dict[str, Any]]) -> list[str]:
        """Create indexes for the settings collection."""
        return [collection.create_index([("type", ASCENDING)], unique=True)]
