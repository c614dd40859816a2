"""
Featured category tiles shown on the home page.
"""

import re
from typing import Annotated, Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from storefront.auth import Principal, require_role
from storefront.catalog.products import UploadedFile, timestamp_ms
from storefront.catalog.taxonomy import Taxonomy
from storefront.catalog.validation import parse_payload
from storefront.config import Settings
from storefront.content.images import check_image_file, swap_image
from storefront.db.repositories import CategoryRepository, FeaturedCategoryRepository, ProductRepository
from storefront.errors import Conflict, NotFound, ValidationFailed
from storefront.models import BackgroundType, FeaturedCategoryDoc, Role
from storefront.storage import MediaPaths, MediaStore, StoredAsset, delete_quietly

logger = structlog.get_logger(__name__)

ADMIN_ONLY = frozenset({Role.ADMIN})
TILE_IMAGE_SIZE = (800, 800)
IMAGE_FIELDS = {"product": "productImage", "background": "backgroundImage"}
CATEGORY_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

Color = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^#[0-9A-Fa-f]{6}$")]


class TileInput(BaseModel):
    """Editable fields of a tile."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    title: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    category_param: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
    description: Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)] = ""
    button_text: Annotated[str, StringConstraints(strip_whitespace=True, max_length=30)] = "EXPLORE"
    is_active: bool = True
    order: int | None = Field(None, ge=0)
    title_color: Color = "#000000"
    description_color: Color = "#000000"
    button_color: Color = "#000000"
    background_type: BackgroundType = BackgroundType.IMAGE
    background_color: Color = "#e5e7eb"

    @field_validator("button_text", mode="before")
    @classmethod
    def default_button(cls, v: Any) -> Any:
        return "EXPLORE" if v in (None, "") else v


class FeaturedCategoryService:
    """Operations behind ``/api/featured-categories``."""

    def __init__(self, db: Database[dict[str, Any]], settings: Settings, media: MediaStore):
        self.repo = FeaturedCategoryRepository(db)
        self.taxonomy = Taxonomy(CategoryRepository(db), ProductRepository(db))
        self.settings = settings
        self.media = media

    def _get(self, category_id: str | None) -> FeaturedCategoryDoc:
        if not category_id:
            raise ValidationFailed("Category ID is required")
        tile = self.repo.get(category_id)
        if tile is None:
            raise NotFound("Featured category not found")
        return tile

    def list_tiles(self, principal: Principal, include_inactive: bool = False) -> dict[str, Any]:
        if include_inactive:
            require_role(principal, ADMIN_ONLY, "view inactive featured categories")
        tiles = self.repo.list_tiles(include_inactive=include_inactive)
        return {"categories": [t.to_api() for t in tiles]}

    def product_categories(self) -> dict[str, Any]:
        return {"categories": sorted(self.taxonomy.merged())}

    def create(self, principal: Principal, data: dict[str, Any]) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage featured categories")
        if not isinstance(data, dict):
            raise ValidationFailed("categoryData is required")
        fields = parse_payload(TileInput, data)

        category_id = str(data.get("id") or f"category-{timestamp_ms()}")
        if not CATEGORY_ID_PATTERN.match(category_id):
            raise ValidationFailed("Invalid category ID")
        if self.repo.get(category_id) is not None:
            raise Conflict("A featured category with this ID already exists")

        values = fields.model_dump()
        if values["order"] is None:
            values["order"] = self.repo.next_order()
        tile = FeaturedCategoryDoc(
            category_id=category_id,
            created_by=principal.actor,
            updated_by=principal.actor,
            **values,
        )
        try:
            self.repo.create(tile)
        except DuplicateKeyError:
            raise Conflict("A featured category with this ID already exists") from None

        logger.info("Featured category created", category_id=category_id, actor=principal.actor)
        return {"success": True, "message": "Category created successfully", "category": tile.to_api()}

    def update(self, principal: Principal, category_id: str | None, data: dict[str, Any]) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage featured categories")
        self._get(category_id)
        if not isinstance(data, dict):
            raise ValidationFailed("categoryData is required")
        fields = parse_payload(TileInput, data)

        values = fields.model_dump(by_alias=True, exclude={"order"} if fields.order is None else set())
        values["backgroundType"] = fields.background_type.value
        values["updatedBy"] = principal.actor
        self.repo.update(category_id, values)

        logger.info("Featured category updated", category_id=category_id, actor=principal.actor)
        return {
            "success": True,
            "message": "Category updated successfully",
            "category": self._get(category_id).to_api(),
        }

    def reorder(self, principal: Principal, entries: Any) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage featured categories")
        if not isinstance(entries, list) or not entries:
            raise ValidationFailed("categories must be a non-empty list")
        orders: dict[str, int] = {}
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("id"):
                raise ValidationFailed("Each entry needs an id and an order")
            order = entry.get("order")
            if isinstance(order, bool) or not isinstance(order, int) or order < 0:
                raise ValidationFailed("Order must be a non-negative integer")
            orders[str(entry["id"])] = order
        matched = self.repo.set_orders(orders)
        return {"success": True, "message": "Categories reordered", "updated": matched}

    def upload_image(
        self,
        principal: Principal,
        category_id: str | None,
        image_type: str | None,
        upload: UploadedFile | None,
    ) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage featured categories")
        field = IMAGE_FIELDS.get(image_type or "")
        if field is None:
            raise ValidationFailed("imageType must be 'product' or 'background'")
        tile = self._get(category_id)
        check_image_file(upload)

        previous = tile.product_image_public_id if image_type == "product" else tile.background_image_public_id
        ts = timestamp_ms()

        def save(asset: StoredAsset) -> bool:
            return self.repo.set_image(tile.category_id, field, asset.url, asset.public_id)

        asset = swap_image(
            self.media,
            upload,
            lambda ext: MediaPaths.featured_category(tile.category_id, image_type, ts, ext),
            TILE_IMAGE_SIZE,
            save,
            previous_public_id=previous,
            quality=self.settings.media_quality,
        )
        return {
            "success": True,
            "message": "Image uploaded successfully",
            "imageUrl": asset.url,
            "publicId": asset.public_id,
        }

    def toggle(self, principal: Principal, category_id: str | None) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage featured categories")
        tile = self._get(category_id)
        self.repo.update(tile.category_id, {"isActive": not tile.is_active, "updatedBy": principal.actor})
        return {
            "success": True,
            "message": f"Category {'deactivated' if tile.is_active else 'activated'}",
            "isActive": not tile.is_active,
        }

    def delete(self, principal: Principal, category_id: str | None) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage featured categories")
        tile = self._get(category_id)
        self.repo.delete(tile.category_id)
        delete_quietly(
            self.media,
            [pid for pid in (tile.product_image_public_id, tile.background_image_public_id) if pid],
        )
        logger.info("Featured category deleted", category_id=tile.category_id, actor=principal.actor)
        return {"success": True, "message": "Category deleted successfully"}
