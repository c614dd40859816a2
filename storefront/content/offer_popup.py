"""
Site-wide offer popup.
"""

from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from pymongo.database import Database

from storefront.auth import Principal, require_role
from storefront.catalog.products import UploadedFile, timestamp_ms
from storefront.catalog.validation import parse_payload
from storefront.config import Settings
from storefront.content.images import check_image_file, swap_image
from storefront.db.repositories import SettingsRepository
from storefront.errors import NotFound, ValidationFailed
from storefront.models import DisplayRules, OfferPopupDoc, Role, TriggerType
from storefront.sanitize import sanitize_text
from storefront.storage import MediaPaths, MediaStore, StoredAsset, delete_quietly

logger = structlog.get_logger(__name__)

MIN_TEXT_LENGTH = 2
MAX_TEXT_LENGTH = 200
MAX_DELAY_SECONDS = 300
POPUP_SIZE = (600, 300)
ADMIN_ONLY = frozenset({Role.ADMIN})
PRIVATE_FIELDS = ("createdBy", "updatedBy", "createdByEmail", "updatedByEmail", "imagePublicId")


class PopupRules(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    trigger_type: TriggerType = TriggerType.SCROLL
    delay_seconds: Any = 0
    show_once: Any = True

    @field_validator("trigger_type", mode="before")
    @classmethod
    def default_trigger(cls, v: Any) -> Any:
        return TriggerType.SCROLL if v in (None, "") else v

    def normalized(self) -> DisplayRules:
        """Delay clamped to 0..300 (non-numbers become 0); only an explicit false disables show-once."""
        delay = self.delay_seconds
        if isinstance(delay, bool) or not isinstance(delay, (int, float)):
            delay = 0
        return DisplayRules(
            trigger_type=self.trigger_type,
            delay_seconds=int(max(0, min(delay, MAX_DELAY_SECONDS))),
            show_once=self.show_once is not False,
        )


def public_view(popup: OfferPopupDoc) -> dict[str, Any]:
    data = popup.to_api()
    for field in PRIVATE_FIELDS:
        data.pop(field, None)
    return data


def _popup_text(body: dict[str, Any], field: str) -> str:
    raw = body.get(field)
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationFailed("All fields (headline, title, subtitle) are required")
    text = sanitize_text(raw) or ""
    if not MIN_TEXT_LENGTH <= len(text) <= MAX_TEXT_LENGTH:
        raise ValidationFailed(
            f"{field.capitalize()} must be between {MIN_TEXT_LENGTH} and {MAX_TEXT_LENGTH} characters"
        )
    return text


class OfferPopupService:
    """Operations behind ``/api/offer-popup``."""

    def __init__(self, db: Database[dict[str, Any]], settings: Settings, media: MediaStore):
        self.repo = SettingsRepository(db)
        self.settings = settings
        self.media = media

    def get(self, principal: Principal, admin_view: bool = False) -> dict[str, Any]:
        popup = self.repo.get_offer_popup()
        include_inactive = admin_view and principal.role == Role.ADMIN
        if popup is None or not (popup.is_active or include_inactive):
            raise NotFound("No popup found")
        return {"success": True, "data": public_view(popup)}

    def save(self, principal: Principal, body: dict[str, Any]) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage offer popup")
        headline = _popup_text(body, "headline")
        title = _popup_text(body, "title")
        subtitle = _popup_text(body, "subtitle")

        rules_raw = body.get("displayRules")
        rules = parse_payload(PopupRules, rules_raw if isinstance(rules_raw, dict) else {}).normalized()

        existing = self.repo.get_offer_popup()
        popup = OfferPopupDoc(
            headline=headline,
            title=title,
            subtitle=subtitle,
            is_active=body.get("isActive") is True,
            display_rules=rules,
            image_src=existing.image_src if existing else None,
            image_public_id=existing.image_public_id if existing else None,
            created_by=principal.actor,
            created_by_email=principal.email,
            updated_by=principal.actor,
            updated_by_email=principal.email,
        )
        saved = self.repo.save_offer_popup(popup)
        logger.info("Offer popup saved", active=saved.is_active, actor=principal.actor)
        return {"success": True, "message": "Popup saved successfully", "data": public_view(saved)}

    def upload_image(self, principal: Principal, upload: UploadedFile | None) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage offer popup")
        check_image_file(upload)

        existing = self.repo.get_offer_popup()
        if existing is None:
            raise NotFound("Popup not found. Create popup data first.")

        ts = timestamp_ms()

        def save(asset: StoredAsset) -> bool:
            updated = self.repo.update_offer_popup({
                "imageSrc": asset.url,
                "imagePublicId": asset.public_id,
                "updatedBy": principal.actor,
            })
            return updated is not None

        asset = swap_image(
            self.media,
            upload,
            lambda ext: MediaPaths.offer_popup(ts, ext),
            POPUP_SIZE,
            save,
            previous_public_id=existing.image_public_id,
            quality=self.settings.media_quality,
        )
        return {
            "success": True,
            "message": "Image uploaded successfully",
            "data": {"url": asset.url, "publicId": asset.public_id},
        }

    def set_active(self, principal: Principal, body: dict[str, Any]) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage offer popup")
        is_active = body.get("isActive")
        if not isinstance(is_active, bool):
            raise ValidationFailed("isActive must be a boolean")
        updated = self.repo.update_offer_popup({"isActive": is_active, "updatedBy": principal.actor})
        if updated is None:
            raise NotFound("Popup not found")
        return {
            "success": True,
            "message": f"Popup {'activated' if is_active else 'deactivated'}",
            "isActive": is_active,
        }

    def delete(self, principal: Principal) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage offer popup")
        popup = self.repo.get_offer_popup()
        if popup is None:
            raise NotFound("Popup not found")
        self.repo.delete_offer_popup()
        if popup.image_public_id:
            delete_quietly(self.media, [popup.image_public_id])
        logger.info("Offer popup deleted", actor=principal.actor)
        return {"success": True, "message": "Popup deleted successfully"}
