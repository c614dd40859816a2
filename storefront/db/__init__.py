"""
Database layer: MongoDB client and repositories.
"""

from storefront.db.client import close_client, get_client, get_collection_names, get_database

__all__ = ["get_client", "get_database", "close_client", "get_collection_names"]
