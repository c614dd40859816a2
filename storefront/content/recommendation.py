"""
"Recommended for you" home page section: texts, a main image, a
background and up to ten small images.
"""

from typing import Annotated, Any

import structlog
from pydantic import BaseModel, ConfigDict, StringConstraints, field_validator
from pydantic.alias_generators import to_camel
from pymongo.database import Database

from storefront.auth import Principal, require_role
from storefront.catalog.products import UploadedFile, timestamp_ms
from storefront.catalog.validation import parse_payload
from storefront.config import Settings
from storefront.content.images import check_image_file, swap_image
from storefront.content.slider import Heading, check_link
from storefront.db.repositories import SettingsRepository
from storefront.errors import NotFound, ValidationFailed
from storefront.models import RecommendationDoc, RecommendationImage, Role
from storefront.storage import MediaPaths, MediaStore, StoredAsset, delete_quietly

logger = structlog.get_logger(__name__)

ADMIN_ONLY = frozenset({Role.ADMIN})
MAX_SUB_IMAGES = 10
IMAGE_SIZES = {
    "main": (1200, 1200),
    "background": (1920, 1080),
    "sub": (800, 600),
}
IMAGE_FIELDS = {"main": "mainImage", "background": "backgroundImage"}
PRIVATE_FIELDS = ("mainImagePublicId", "backgroundImagePublicId", "createdBy", "updatedBy")

Subtitle = Annotated[str, StringConstraints(strip_whitespace=True, max_length=300)]


class RecommendationInput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    header_title: Heading
    header_subtitle: Subtitle = ""
    main_title: Heading
    main_subtitle: Subtitle = ""
    button_text: Annotated[str, StringConstraints(strip_whitespace=True, max_length=30)] = "Explore Now"
    button_link: str = "/products"
    is_active: bool = True

    @field_validator("header_subtitle", "main_subtitle", mode="before")
    @classmethod
    def none_to_blank(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("button_text", mode="before")
    @classmethod
    def default_button(cls, v: Any) -> Any:
        return "Explore Now" if v in (None, "") else v

    @field_validator("button_link", mode="before")
    @classmethod
    def valid_link(cls, v: Any) -> Any:
        return check_link(v, "/products")


def public_view(section: RecommendationDoc) -> dict[str, Any]:
    data = section.to_api()
    for field in PRIVATE_FIELDS:
        data.pop(field, None)
    return data


def _sub_index(value: Any) -> int:
    try:
        index = int(value)
    except (TypeError, ValueError):
        raise ValidationFailed("subImageIndex is required for sub images") from None
    if not 0 <= index < MAX_SUB_IMAGES:
        raise ValidationFailed(f"subImageIndex must be between 0 and {MAX_SUB_IMAGES - 1}")
    return index


def _image_type(value: Any) -> str:
    if value not in IMAGE_SIZES:
        raise ValidationFailed("imageType must be 'main', 'background' or 'sub'")
    return value


class RecommendationService:
    """Operations behind ``/api/recommendation``."""

    def __init__(self, db: Database[dict[str, Any]], settings: Settings, media: MediaStore):
        self.repo = SettingsRepository(db)
        self.settings = settings
        self.media = media

    def _existing(self) -> RecommendationDoc:
        section = self.repo.get_recommendation()
        if section is None:
            raise NotFound("Recommendation section not found")
        return section

    def get(self, principal: Principal, include_inactive: bool = False) -> dict[str, Any]:
        if include_inactive:
            require_role(principal, ADMIN_ONLY, "view the inactive recommendation section")
        section = self.repo.get_recommendation()
        if section is None or not (section.is_active or include_inactive):
            raise NotFound("Recommendation section not found")
        data = section.to_api() if principal.role == Role.ADMIN else public_view(section)
        return {"success": True, "data": data}

    def save(self, principal: Principal, body: Any) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage the recommendation section")
        if not isinstance(body, dict):
            raise ValidationFailed("Request body must be an object")
        fields = parse_payload(RecommendationInput, body)

        existing = self.repo.get_recommendation()
        images: dict[str, Any] = {}
        if existing is not None:
            images = {
                "main_image": existing.main_image,
                "main_image_public_id": existing.main_image_public_id,
                "background_image": existing.background_image,
                "background_image_public_id": existing.background_image_public_id,
                "sub_images": existing.sub_images,
            }
        section = RecommendationDoc(
            **fields.model_dump(),
            **images,
            created_by=principal.actor,
            updated_by=principal.actor,
        )
        saved = self.repo.save_recommendation(section)
        logger.info("Recommendation section saved", active=saved.is_active, actor=principal.actor)
        return {"success": True, "message": "Recommendation section saved successfully", "data": saved.to_api()}

    def upload_image(
        self,
        principal: Principal,
        image_type: str | None,
        sub_image_index: Any,
        upload: UploadedFile | None,
    ) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage the recommendation section")
        image_type = _image_type(image_type)
        index = _sub_index(sub_image_index) if image_type == "sub" else None
        check_image_file(upload)
        section = self._existing()

        subs = list(section.sub_images)
        if index is not None:
            if index > len(subs):
                raise ValidationFailed("Sub images must be filled in order")
            previous = subs[index].public_id if index < len(subs) else None
            slot = f"sub{index}"
        else:
            previous = getattr(section, f"{image_type}_image_public_id")
            slot = image_type

        def save(asset: StoredAsset) -> bool:
            if index is None:
                field = IMAGE_FIELDS[image_type]
                fields: dict[str, Any] = {field: asset.url, f"{field}PublicId": asset.public_id}
            else:
                entry = RecommendationImage(
                    url=asset.url,
                    public_id=asset.public_id,
                    alt=f"{section.main_title} {index + 1}",
                    order=index,
                )
                if index < len(subs):
                    subs[index] = entry
                else:
                    subs.append(entry)
                fields = {"subImages": [s.model_dump(by_alias=True) for s in subs]}
            fields["updatedBy"] = principal.actor
            return self.repo.update_recommendation(fields) is not None

        ts = timestamp_ms()
        asset = swap_image(
            self.media,
            upload,
            lambda ext: MediaPaths.recommendation(slot, ts, ext),
            IMAGE_SIZES[image_type],
            save,
            previous_public_id=previous,
            quality=self.settings.media_quality,
        )
        return {
            "success": True,
            "message": "Image uploaded successfully",
            "data": {"url": asset.url, "publicId": asset.public_id, "imageType": image_type},
        }

    def toggle(self, principal: Principal) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage the recommendation section")
        section = self._existing()
        self.repo.update_recommendation({"isActive": not section.is_active, "updatedBy": principal.actor})
        return {
            "success": True,
            "message": f"Recommendation section {'deactivated' if section.is_active else 'activated'}",
            "isActive": not section.is_active,
        }

    def delete_image(self, principal: Principal, image_type: str | None, sub_image_index: Any) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage the recommendation section")
        image_type = _image_type(image_type)
        section = self._existing()

        if image_type == "sub":
            index = _sub_index(sub_image_index)
            subs = list(section.sub_images)
            if index >= len(subs):
                raise NotFound("Sub image not found")
            removed = subs.pop(index).public_id
            for order, entry in enumerate(subs):
                entry.order = order
            fields: dict[str, Any] = {"subImages": [s.model_dump(by_alias=True) for s in subs]}
        else:
            removed = getattr(section, f"{image_type}_image_public_id")
            if not removed:
                raise NotFound("Image not found")
            field = IMAGE_FIELDS[image_type]
            fields = {field: None, f"{field}PublicId": None}

        fields["updatedBy"] = principal.actor
        self.repo.update_recommendation(fields)
        delete_quietly(self.media, [removed])
        logger.info("Recommendation image removed", image_type=image_type, actor=principal.actor)
        return {"success": True, "message": "Image deleted successfully"}
