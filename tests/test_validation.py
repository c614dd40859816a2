"""
Tests for product payload validation and text scrubbing.
"""

import pytest

from storefront.catalog.validation import (
    ProductInput,
    normalize_branch,
    parse_payload,
    parse_stock_value,
    sanitize_filename,
    sanitize_search,
)
from storefront.errors import ValidationFailed
from storefront.models import ProductStatus
from storefront.sanitize import is_valid_email, sanitize_text


def payload(**overrides) -> dict:
    return {"name": " Mango Ice ", "price": "950", "category": "E-LIQUID", **overrides}


class TestProductInput:
    """Tests for ProductInput parsing."""

    def test_minimal_payload(self):
        """Test defaults and trimming."""
        data = parse_payload(ProductInput, payload())

        assert data.name == "Mango Ice"
        assert data.price == 950
        assert data.status == ProductStatus.ACTIVE
        assert data.stock is None
        assert data.tags == []

    def test_missing_required(self):
        """Test that name, price and category are required."""
        with pytest.raises(ValidationFailed) as exc:
            parse_payload(ProductInput, {"price": 1})

        fields = {d["field"] for d in exc.value.extra["details"]}
        assert {"name", "category"} <= fields

    def test_barcode_pattern(self):
        """Test the barcode character set."""
        assert parse_payload(ProductInput, payload(barcode="AB-123")).barcode == "AB-123"
        assert parse_payload(ProductInput, payload(barcode="  ")).barcode is None
        with pytest.raises(ValidationFailed):
            parse_payload(ProductInput, payload(barcode="AB 123"))

    def test_too_many_tags(self):
        """Test the tag count limit."""
        with pytest.raises(ValidationFailed):
            parse_payload(ProductInput, payload(tags=[f"t{n}" for n in range(21)]))

    def test_stock_keys_lowercased(self):
        """Test stock key normalisation."""
        data = parse_payload(ProductInput, payload(stock={"Mirpur_Stock": "7"}))

        assert data.stock == {"mirpur_stock": 7}

    def test_branches_normalized(self):
        """Test that branch names are trimmed, lowercased and de-duplicated."""
        data = parse_payload(ProductInput, payload(branches=[" Mirpur", "mirpur", "uttara2"]))

        assert data.branches == ["mirpur", "uttara2"]

    @pytest.mark.parametrize("branches", [["main st"], ["a.b"], ["x" * 31], [7], "mirpur"])
    def test_branches_rejected(self, branches):
        """Test branch names that cannot form a stock key."""
        with pytest.raises(ValidationFailed) as exc:
            parse_payload(ProductInput, payload(branches=branches))

        assert exc.value.message.startswith("branches")

    def test_status_values(self):
        """Test the status whitelist."""
        assert parse_payload(ProductInput, payload(status="draft")).status == ProductStatus.DRAFT
        assert parse_payload(ProductInput, payload(status="")).status == ProductStatus.ACTIVE
        with pytest.raises(ValidationFailed):
            parse_payload(ProductInput, payload(status="sold"))

    def test_infinite_price(self):
        """Test that non-finite prices are rejected."""
        with pytest.raises(ValidationFailed):
            parse_payload(ProductInput, payload(price="inf"))

    def test_image_order_entries(self):
        """Test camelCase image order entries."""
        data = parse_payload(ProductInput, payload(imageOrder=[{"url": "u", "publicId": "p"}]))

        assert data.image_order[0].public_id == "p"


class TestStockValue:
    """Tests for stock count parsing."""

    @pytest.mark.parametrize("value,expected", [(0, 0), ("12", 12), (" ", 0), (5.0, 5), (99999, 99999)])
    def test_accepted(self, value, expected):
        """Test values that parse."""
        assert parse_stock_value("x_stock", value) == expected

    @pytest.mark.parametrize("value", [-1, 100000, 1.5, "abc", True, None])
    def test_rejected(self, value):
        """Test values that do not parse."""
        with pytest.raises(ValueError):
            parse_stock_value("x_stock", value)


class TestTextHelpers:
    """Tests for search, branch, filename and free-text helpers."""

    def test_sanitize_search(self):
        """Test trimming and the length limit."""
        assert sanitize_search("  mango ") == "mango"
        assert sanitize_search("   ") is None
        with pytest.raises(ValidationFailed):
            sanitize_search("x" * 101)

    def test_normalize_branch(self):
        """Test branch name normalisation."""
        assert normalize_branch(" Mirpur ") == "mirpur"
        with pytest.raises(ValidationFailed):
            normalize_branch("mir pur")
        with pytest.raises(ValidationFailed):
            normalize_branch("x" * 31)
        with pytest.raises(ValidationFailed):
            normalize_branch(None)

    def test_sanitize_filename(self):
        """Test filename scrubbing."""
        assert sanitize_filename("../../etc/passwd") == "etc_passwd"
        assert sanitize_filename("my photo (1).png") == "my_photo_1.png"
        assert sanitize_filename(None) == "upload"

    def test_sanitize_text(self):
        """Test markup and script marker removal."""
        assert sanitize_text("  <b>Hi</b> ") == "bHi/b"
        assert sanitize_text("javascript:alert(1)") == "alert1"
        assert sanitize_text(42) is None
        assert sanitize_text("x" * 50, max_length=10) == "x" * 10

    def test_email(self):
        """Test the email shape check."""
        assert is_valid_email("a@b.co")
        assert not is_valid_email("a@b")
        assert not is_valid_email("")
