"""
Single-image replacement shared by the popup and featured tiles.
"""

from typing import Callable

import structlog
from pymongo.errors import PyMongoError

from storefront.catalog.products import UploadedFile
from storefront.catalog.validation import sanitize_filename
from storefront.errors import MediaStoreError, UpstreamError, ValidationFailed
from storefront.storage import MediaStore, StoredAsset, delete_quietly, fill_image

logger = structlog.get_logger(__name__)

MAX_IMAGE_BYTES = 10 * 1024 * 1024
EXTENSIONS_BY_TYPE = {
    "image/jpeg": (".jpg", ".jpeg"),
    "image/png": (".png",),
    "image/webp": (".webp",),
}


def check_image_file(upload: UploadedFile | None, max_bytes: int = MAX_IMAGE_BYTES) -> None:
    """JPEG, PNG or WEBP with a matching extension, non-empty and under the size cap."""
    if upload is None:
        raise ValidationFailed("No image file provided")
    allowed = EXTENSIONS_BY_TYPE.get(upload.content_type)
    if allowed is None:
        raise ValidationFailed("Invalid file type. Use JPEG, PNG or WEBP")
    name = (upload.filename or "").lower()
    if not name.endswith(allowed):
        raise ValidationFailed("File extension does not match MIME type")
    if not upload.data or len(upload.data) > max_bytes:
        raise ValidationFailed("Invalid file size")


def swap_image(
    media: MediaStore,
    upload: UploadedFile,
    public_id_for: Callable[[str], str],
    size: tuple[int, int],
    save: Callable[[StoredAsset], bool],
    previous_public_id: str | None = None,
    quality: int = 85,
) -> StoredAsset:
    """
    Upload a replacement image and point the document at it.

    The new asset is removed if the document update fails; the previous
    asset is removed only after the update succeeds.
    """
    try:
        prepared = fill_image(upload.data, size[0], size[1], quality=quality)
    except ValueError as e:
        raise ValidationFailed(str(e)) from e

    try:
        asset = media.upload(public_id_for(prepared.extension), prepared.data, prepared.content_type)
    except MediaStoreError as e:
        raise UpstreamError("Image upload failed") from e

    try:
        saved = save(asset)
    except PyMongoError as e:
        logger.error("Image save failed, removing upload", public_id=asset.public_id, error=str(e))
        saved = False
    if not saved:
        delete_quietly(media, [asset.public_id])
        raise UpstreamError("Failed to save uploaded image")

    if previous_public_id and previous_public_id != asset.public_id:
        delete_quietly(media, [previous_public_id])

    logger.info("Image replaced", public_id=asset.public_id, file=sanitize_filename(upload.filename))
    return asset
