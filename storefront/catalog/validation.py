"""
Request payload validation for catalog writes.
"""

import math
import re
from typing import Annotated, Any, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from storefront.errors import ValidationFailed
from storefront.models import ProductStatus

MAX_PRICE = 1_000_000
MAX_STOCK = 99_999
MAX_TAGS = 20
MAX_SEARCH_LENGTH = 100
MAX_FILENAME_LENGTH = 255

STOCK_KEY_PATTERN = re.compile(r"^[a-z0-9]+_stock$", re.IGNORECASE)
BRANCH_NAME_PATTERN = re.compile(r"^[a-z0-9]+$")

Text = Annotated[str, StringConstraints(strip_whitespace=True)]
Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
Category = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
ShortText = Annotated[str, StringConstraints(strip_whitespace=True, max_length=100)]
Tag = Annotated[str, StringConstraints(strip_whitespace=True, max_length=50)]
Price = Annotated[float, Field(ge=0, le=MAX_PRICE, allow_inf_nan=False)]

ModelT = TypeVar("ModelT", bound=BaseModel)


class ImageOrderEntry(BaseModel):
    """One entry of a client-side image ordering; unsaved entries lack ids."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    url: str | None = None
    public_id: str | None = None
    alt: str | None = None


class ProductInput(BaseModel):
    """Body of a product create or update."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    name: Name
    price: Price
    category: Category
    description: Annotated[str, StringConstraints(strip_whitespace=True, max_length=2000)] = ""
    brand: ShortText = ""
    subcategory: Annotated[str, StringConstraints(strip_whitespace=True, max_length=50)] = ""
    barcode: Annotated[str, StringConstraints(strip_whitespace=True, max_length=64, pattern=r"^[A-Za-z0-9-]+$")] | None = None
    compare_price: Price | None = None
    tags: list[Tag] = Field(default_factory=list)
    status: ProductStatus = ProductStatus.ACTIVE

    nicotine_strength: ShortText | None = None
    vg_pg_ratio: ShortText | None = None
    flavor: ShortText = ""
    resistance: ShortText | None = None
    wattage_range: ShortText | None = None
    specifications: dict[str, Any] = Field(default_factory=dict)
    branch_specifications: dict[str, dict[str, Any]] = Field(default_factory=dict)

    stock: dict[str, int] | None = None
    branches: list[str] | None = None

    # Update only
    id: str | None = None
    image_order: list[ImageOrderEntry] | None = None

    @field_validator("barcode", "compare_price", "nicotine_strength", "vg_pg_ratio", "resistance", "wattage_range", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("description", "brand", "subcategory", "flavor", mode="before")
    @classmethod
    def none_to_blank(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        if isinstance(v, list):
            v = [t for t in v if not (isinstance(t, str) and not t.strip())]
            if len(v) > MAX_TAGS:
                raise ValueError(f"At most {MAX_TAGS} tags are allowed")
        return v

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, v: Any) -> Any:
        return ProductStatus.ACTIVE if v in (None, "") else v

    @field_validator("stock", mode="before")
    @classmethod
    def check_stock(cls, v: Any) -> Any:
        if v is None:
            return None
        if not isinstance(v, dict):
            raise ValueError("Stock must be an object of <branch>_stock counts")
        checked: dict[str, int] = {}
        for key, value in v.items():
            if not isinstance(key, str) or not STOCK_KEY_PATTERN.match(key):
                raise ValueError(f'Invalid stock key "{key}". Keys look like "ghatpar_stock"')
            checked[key.lower()] = parse_stock_value(key, value)
        return checked

    @field_validator("branches", mode="before")
    @classmethod
    def check_branches(cls, v: Any) -> Any:
        if v is None:
            return None
        if not isinstance(v, list):
            raise ValueError("Branches must be a list of branch names")
        names: list[str] = []
        for entry in v:
            try:
                name = normalize_branch(entry)
            except ValidationFailed as e:
                raise ValueError(f'Invalid branch "{entry}": {e.message}') from None
            if name not in names:
                names.append(name)
        return names


def parse_stock_value(key: str, value: Any) -> int:
    """Whole number within 0..MAX_STOCK; numeric strings are accepted."""
    if isinstance(value, bool):
        raise ValueError(f"Stock for {key} must be a number")
    if isinstance(value, str):
        value = value.strip() or "0"
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Stock for {key} must be a number") from None
    if not math.isfinite(number) or number != int(number):
        raise ValueError(f"Stock for {key} must be a whole number")
    if not 0 <= number <= MAX_STOCK:
        raise ValueError(f"Stock for {key} must be between 0 and {MAX_STOCK}")
    return int(number)


def parse_payload(model: type[ModelT], data: Any) -> ModelT:
    """Validate a payload, turning pydantic errors into a 400."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed(describe_errors(e), details=_error_list(e)) from e


def describe_errors(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid value").removeprefix("Value error, ")
    return f"{location}: {message}" if location else message


def _error_list(error: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(p) for p in err.get("loc", ())),
            "message": err.get("msg", "").removeprefix("Value error, "),
        }
        for err in error.errors()
    ]


def escape_pattern(text: str) -> str:
    """Escape user text for literal use inside a regex query."""
    return re.escape(text)


def sanitize_search(text: str | None) -> str | None:
    if text is None:
        return None
    text = text.strip()
    if not text:
        return None
    if len(text) > MAX_SEARCH_LENGTH:
        raise ValidationFailed(f"Search term must be at most {MAX_SEARCH_LENGTH} characters")
    return text


def normalize_branch(name: Any, max_length: int = 30) -> str:
    """Lowercase alphanumeric branch name."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationFailed("Branch name is required")
    name = name.strip().lower()
    if len(name) > max_length or not BRANCH_NAME_PATTERN.match(name):
        raise ValidationFailed(
            f"Branch name must be 1-{max_length} lowercase letters or digits"
        )
    return name


_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._ -]")


def sanitize_filename(filename: str | None) -> str:
    """Filename safe for metadata and logs; never used as a lookup key."""
    name = (filename or "").replace("/", "_").replace("\\", "_")
    name = _UNSAFE_FILENAME_CHARS.sub("", name)
    name = re.sub(r"\.{2,}", ".", name)
    name = re.sub(r"\s+", "_", name).strip("._")
    return name[:MAX_FILENAME_LENGTH] or "upload"
