"""
Media storage: Azure Blob client, storage ids and image preparation.
"""

from storefront.storage.blob import (
    AzureMediaStore,
    MediaStore,
    StoredAsset,
    delete_quietly,
    get_media_store,
)
from storefront.storage.paths import MediaPaths
from storefront.storage.transform import PreparedImage, fill_image

__all__ = [
    "AzureMediaStore",
    "MediaStore",
    "StoredAsset",
    "delete_quietly",
    "get_media_store",
    "MediaPaths",
    "PreparedImage",
    "fill_image",
]
