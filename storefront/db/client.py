"""
MongoDB client and connection management.
"""

from functools import lru_cache
from typing import Any

from pymongo import MongoClient
from pymongo.database import Database

from storefront.config import get_settings


_client: MongoClient | None = None


def get_client() -> MongoClient:
    """Get or create the process-wide MongoDB client."""
    global _client
    if _client is None:
        settings = get_settings()
        _client = MongoClient(
            settings.mongodb_uri_str,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=10000,
            socketTimeoutMS=30000,
            maxPoolSize=10,
            retryWrites=True,
            tz_aware=True,
        )
    return _client


def get_database() -> Database[dict[str, Any]]:
    """Get the configured MongoDB database."""
    settings = get_settings()
    client = get_client()
    return client[settings.mongodb_database]


def close_client() -> None:
    """Close MongoDB client connection."""
    global _client
    if _client is not None:
        _client.close()
        _client = None


@lru_cache
def get_collection_names() -> dict[str, str]:
    """Get collection names for the application."""
    return {
        "products": "products",
        "categories": "categories",
        "settings": "settings",
        "orders": "orders",
        "featured_categories": "featured_categories",
        "sliders": "sliders",
        "sales": "sales",
        "requisitions": "requisitions",
        "users": "user",
        "audit_logs": "audit_logs",
    }
