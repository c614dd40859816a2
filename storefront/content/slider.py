"""
Home page hero slider.
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
from storefront.catalog.validation import parse_payload
from storefront.config import Settings
from storefront.content.images import check_image_file, swap_image
from storefront.db.repositories import SlideRepository
from storefront.errors import Conflict, NotFound, ValidationFailed
from storefront.models import Role, SlideAlignment, SlideDoc
from storefront.storage import MediaPaths, MediaStore, StoredAsset, delete_quietly

logger = structlog.get_logger(__name__)

ADMIN_ONLY = frozenset({Role.ADMIN})
MAX_SLIDES = 20
SLIDE_IMAGE_SIZE = (1920, 1080)
SLIDE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
LINK_PATTERN = re.compile(r"^(/[^\s]*|https?://[^\s]+)$")
PRIVATE_FIELDS = ("imagePublicId", "createdBy", "updatedBy")

Heading = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=200)]


def check_link(v: Any, default: str) -> Any:
    """Site-relative path or http(s) URL; blank means ``default``."""
    if v in (None, ""):
        return default
    if not isinstance(v, str) or len(v) > 200 or not LINK_PATTERN.match(v.strip()):
        raise ValueError("Link must be a site path starting with / or an http(s) URL")
    return v.strip()


class SlideInput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    title: Heading
    subtitle: Heading
    description: Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)] = ""
    button_text: Annotated[str, StringConstraints(strip_whitespace=True, max_length=30)] = "Explore"
    button_link: str = "/products"
    alignment: SlideAlignment = SlideAlignment.CENTER
    is_active: bool = True
    order: int | None = Field(None, ge=0)

    @field_validator("button_text", mode="before")
    @classmethod
    def default_button(cls, v: Any) -> Any:
        return "Explore" if v in (None, "") else v

    @field_validator("button_link", mode="before")
    @classmethod
    def valid_link(cls, v: Any) -> Any:
        return check_link(v, "/products")

    @field_validator("alignment", mode="before")
    @classmethod
    def default_alignment(cls, v: Any) -> Any:
        return SlideAlignment.CENTER if v in (None, "") else v


def public_view(slide: SlideDoc) -> dict[str, Any]:
    data = slide.to_api()
    for field in PRIVATE_FIELDS:
        data.pop(field, None)
    return data


class SliderService:
    """Operations behind ``/api/slider``."""

    def __init__(self, db: Database[dict[str, Any]], settings: Settings, media: MediaStore):
        self.repo = SlideRepository(db)
        self.settings = settings
        self.media = media

    def _get(self, slide_id: str | None) -> SlideDoc:
        if not slide_id:
            raise ValidationFailed("Slide ID is required")
        slide = self.repo.get(slide_id)
        if slide is None:
            raise NotFound("Slide not found")
        return slide

    def _view(self, principal: Principal, slide: SlideDoc) -> dict[str, Any]:
        return slide.to_api() if principal.role == Role.ADMIN else public_view(slide)

    def get_slide(self, principal: Principal, slide_id: str, include_inactive: bool = False) -> dict[str, Any]:
        if include_inactive:
            require_role(principal, ADMIN_ONLY, "view inactive slides")
        slide = self._get(slide_id)
        if not slide.is_active and not include_inactive:
            raise NotFound("Slide not available")
        return {"success": True, "slide": self._view(principal, slide)}

    def list_slides(self, principal: Principal, include_inactive: bool = False) -> dict[str, Any]:
        if include_inactive:
            require_role(principal, ADMIN_ONLY, "view inactive slides")
        slides = self.repo.list_slides(include_inactive=include_inactive)
        return {"success": True, "slides": [self._view(principal, s) for s in slides]}

    def create(self, principal: Principal, data: Any) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage slides")
        if not isinstance(data, dict):
            raise ValidationFailed("slideData is required")
        fields = parse_payload(SlideInput, data)
        if self.repo.count() >= MAX_SLIDES:
            raise ValidationFailed(f"At most {MAX_SLIDES} slides are allowed")

        slide_id = str(data.get("id") or f"slide-{timestamp_ms()}")
        if not SLIDE_ID_PATTERN.match(slide_id):
            raise ValidationFailed("Invalid slide ID")
        if self.repo.get(slide_id) is not None:
            raise Conflict("A slide with this ID already exists")

        values = fields.model_dump()
        if values["order"] is None:
            values["order"] = self.repo.next_order()
        slide = SlideDoc(slide_id=slide_id, created_by=principal.actor, updated_by=principal.actor, **values)
        try:
            self.repo.create(slide)
        except DuplicateKeyError:
            raise Conflict("A slide with this ID already exists") from None

        logger.info("Slide created", slide_id=slide_id, actor=principal.actor)
        return {"success": True, "message": "Slide created successfully", "slide": slide.to_api()}

    def update(self, principal: Principal, slide_id: str | None, data: Any) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage slides")
        self._get(slide_id)
        if not isinstance(data, dict):
            raise ValidationFailed("slideData is required")
        fields = parse_payload(SlideInput, data)

        # The image is managed through uploads only
        values = fields.model_dump(by_alias=True, exclude={"order"} if fields.order is None else set())
        values["alignment"] = fields.alignment.value
        values["updatedBy"] = principal.actor
        self.repo.update(slide_id, values)

        logger.info("Slide updated", slide_id=slide_id, actor=principal.actor)
        return {"success": True, "message": "Slide updated successfully", "slide": self._get(slide_id).to_api()}

    def reorder(self, principal: Principal, entries: Any) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage slides")
        if not isinstance(entries, list) or not entries:
            raise ValidationFailed("slides must be a non-empty list")
        orders: dict[str, int] = {}
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("id"):
                raise ValidationFailed("Each entry needs an id and an order")
            order = entry.get("order")
            if isinstance(order, bool) or not isinstance(order, int) or order < 0:
                raise ValidationFailed("Order must be a non-negative integer")
            orders[str(entry["id"])] = order
        matched = self.repo.set_orders(orders)
        return {"success": True, "message": "Slides reordered", "updated": matched}

    def upload_image(self, principal: Principal, slide_id: str | None, upload: UploadedFile | None) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage slides")
        slide = self._get(slide_id)
        check_image_file(upload)
        ts = timestamp_ms()

        def save(asset: StoredAsset) -> bool:
            return self.repo.update(
                slide.slide_id,
                {"image": asset.url, "imagePublicId": asset.public_id, "updatedBy": principal.actor},
            )

        asset = swap_image(
            self.media,
            upload,
            lambda ext: MediaPaths.slide(slide.slide_id, ts, ext),
            SLIDE_IMAGE_SIZE,
            save,
            previous_public_id=slide.image_public_id,
            quality=self.settings.media_quality,
        )
        return {
            "success": True,
            "message": "Image uploaded successfully",
            "imageUrl": asset.url,
            "publicId": asset.public_id,
        }

    def toggle(self, principal: Principal, slide_id: str | None) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage slides")
        slide = self._get(slide_id)
        self.repo.update(slide.slide_id, {"isActive": not slide.is_active, "updatedBy": principal.actor})
        return {
            "success": True,
            "message": f"Slide {'deactivated' if slide.is_active else 'activated'}",
            "isActive": not slide.is_active,
        }

    def delete(self, principal: Principal, slide_id: str | None) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage slides")
        slide = self._get(slide_id)
        self.repo.delete(slide.slide_id)
        if slide.image_public_id:
            delete_quietly(self.media, [slide.image_public_id])
        logger.info("Slide deleted", slide_id=slide.slide_id, actor=principal.actor)
        return {"success": True, "message": "Slide deleted successfully"}
