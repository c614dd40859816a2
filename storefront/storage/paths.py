"""
Media path utilities for consistent storage id generation.
"""

import re


class MediaPaths:
    """
    Standardized storage id generation.

    The storage id of an asset is its blob path, and doubles as the
    ``publicId`` recorded on documents.

    Container structure:
    - vwv_vape_products/vape_product_{product_id}_{ts}_{n}.{ext}
    - vwv/offer-popups/offer_popup_{ts}.{ext}
    - vwv/featured-categories/{category_id}_{image_type}_{ts}.{ext}
    - vwv/slider/{slide_id}_{ts}.{ext}
    - vwv/recommendation/{image_type}_{ts}.{ext}
    """

    PRODUCTS = "vwv_vape_products"
    OFFER_POPUPS = "vwv/offer-popups"
    FEATURED = "vwv/featured-categories"
    SLIDER = "vwv/slider"
    RECOMMENDATION = "vwv/recommendation"

    MAX_ID_LENGTH = 200
    _ID_PATTERN = re.compile(r"^[A-Za-z0-9_./-]+$")

    @staticmethod
    def product_image(product_id: str, timestamp_ms: int, index: int, extension: str = "webp") -> str:
        """Path for a product image; ``index`` is the position within one upload call."""
        return f"{MediaPaths.PRODUCTS}/vape_product_{product_id}_{timestamp_ms}_{index}.{extension}"

    @staticmethod
    def offer_popup(timestamp_ms: int, extension: str = "webp") -> str:
        return f"{MediaPaths.OFFER_POPUPS}/offer_popup_{timestamp_ms}.{extension}"

    @staticmethod
    def featured_category(category_id: str, image_type: str, timestamp_ms: int, extension: str = "webp") -> str:
        return f"{MediaPaths.FEATURED}/{category_id}_{image_type}_{timestamp_ms}.{extension}"

    @staticmethod
    def slide(slide_id: str, timestamp_ms: int, extension: str = "webp") -> str:
        return f"{MediaPaths.SLIDER}/{slide_id}_{timestamp_ms}.{extension}"

    @staticmethod
    def recommendation(image_type: str, timestamp_ms: int, extension: str = "webp") -> str:
        """Path for a recommendation image; sub images carry their slot in ``image_type``."""
        return f"{MediaPaths.RECOMMENDATION}/{image_type}_{timestamp_ms}.{extension}"

    @staticmethod
    def is_valid_id(public_id: str) -> bool:
        """Check a client-supplied storage id before it reaches the store."""
        if not public_id or len(public_id) > MediaPaths.MAX_ID_LENGTH:
            return False
        return MediaPaths._ID_PATTERN.match(public_id) is not None

    @staticmethod
    def get_folder(path: str) -> str:
        """Get the folder part of a storage id."""
        return path.rsplit("/", 1)[0] if "/" in path else ""

    @staticmethod
    def get_extension(path: str) -> str:
        """Get file extension from path."""
        name = path.rsplit("/", 1)[-1]
        return name.rsplit(".", 1)[-1] if "." in name else ""
