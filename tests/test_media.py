"""
Tests for media paths, upload buffering and image preparation.
"""

from io import BytesIO

import pytest
from fastapi import UploadFile
from PIL import Image

from storefront.api.deps import read_upload
from storefront.errors import MediaStoreError
from storefront.storage import MediaPaths, delete_quietly, fill_image
from tests.conftest import FakeMediaStore, image_bytes


class TestMediaPaths:
    """Tests for storage id generation."""

    def test_product_image_path(self):
        """Test product image id generation."""
        path = MediaPaths.product_image("65f0c2a1b2c3d4e5f6a7b8c9", 1700000000000, 2, "webp")
        assert path == "vwv_vape_products/vape_product_65f0c2a1b2c3d4e5f6a7b8c9_1700000000000_2.webp"

    def test_offer_popup_path(self):
        """Test popup image id generation."""
        assert MediaPaths.offer_popup(1700000000000, "jpg") == "vwv/offer-popups/offer_popup_1700000000000.jpg"

    def test_featured_category_path(self):
        """Test featured tile image id generation."""
        path = MediaPaths.featured_category("category-1", "background", 1700000000000)
        assert path == "vwv/featured-categories/category-1_background_1700000000000.webp"

    def test_slide_path(self):
        """Test hero slide image id generation."""
        assert MediaPaths.slide("slide-1", 1700000000000) == "vwv/slider/slide-1_1700000000000.webp"

    def test_recommendation_path(self):
        """Test recommendation image id generation."""
        path = MediaPaths.recommendation("sub3", 1700000000000, "jpg")
        assert path == "vwv/recommendation/sub3_1700000000000.jpg"

    def test_valid_ids(self):
        """Test storage ids the delete path accepts."""
        assert MediaPaths.is_valid_id("vwv_vape_products/vape_product_1_2_0.webp")
        assert MediaPaths.is_valid_id("vwv/offer-popups/offer_popup_1.jpg")

    def test_invalid_ids(self):
        """Test storage ids the delete path rejects."""
        assert not MediaPaths.is_valid_id("")
        assert not MediaPaths.is_valid_id("has space.webp")
        assert not MediaPaths.is_valid_id("quote'.webp")
        assert not MediaPaths.is_valid_id("a" * 201)

    def test_folder_and_extension(self):
        """Test splitting a storage id."""
        path = "vwv/offer-popups/offer_popup_1.jpg"
        assert MediaPaths.get_folder(path) == "vwv/offer-popups"
        assert MediaPaths.get_extension(path) == "jpg"
        assert MediaPaths.get_folder("plain.webp") == ""


class TestFillImage:
    """Tests for resizing uploads."""

    def test_output_size(self):
        """Test that the image is cropped to the exact box."""
        prepared = fill_image(image_bytes(size=(1200, 600)), 800, 800)

        with Image.open(BytesIO(prepared.data)) as img:
            assert img.size == (800, 800)
        assert (prepared.width, prepared.height) == (800, 800)
        assert prepared.content_type in ("image/webp", "image/jpeg")
        assert prepared.extension in ("webp", "jpg")

    def test_rejects_non_image(self):
        """Test that undecodable data raises ValueError."""
        with pytest.raises(ValueError):
            fill_image(b"not an image at all", 100, 100)

    def test_palette_image(self):
        """Test that palette images are converted before encoding."""
        buffer = BytesIO()
        Image.new("P", (50, 50)).save(buffer, format="GIF")

        prepared = fill_image(buffer.getvalue(), 20, 20)

        assert prepared.width == 20


class TestDeleteQuietly:
    """Tests for best-effort asset removal."""

    def test_collects_failures(self):
        """Test that failed deletes are reported, not raised."""
        class FlakyStore(FakeMediaStore):
            def delete(self, public_id):
                if public_id == "bad":
                    raise MediaStoreError("nope")
                return super().delete(public_id)

        store = FlakyStore()

        assert delete_quietly(store, ["good", "bad", "other"]) == ["bad"]
        assert store.deleted == ["good", "other"]


class TestReadUpload:
    """Tests for buffering multipart parts."""

    def test_reads_at_most_one_byte_past_ceiling(self):
        """Test that an oversize part is cut at max_bytes + 1."""
        upload = UploadFile(BytesIO(b"x" * 1000), filename="big.png")

        buffered = read_upload(upload, 10)

        assert len(buffered.data) == 11
        assert buffered.filename == "big.png"

    def test_small_part_read_whole(self):
        """Test that a part under the ceiling is read completely."""
        buffered = read_upload(UploadFile(BytesIO(b"abc"), filename="a.png"), 10)

        assert buffered.data == b"abc"

    def test_missing_part(self):
        """Test that an absent part stays None."""
        assert read_upload(None, 10) is None
