"""
/api/recommendation: the home page recommendation section.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, File, Form, Query, UploadFile
from pymongo.database import Database

from storefront.api.deps import (
    check_upload_quota,
    get_app_settings,
    get_db,
    get_media,
    get_principal,
    read_upload,
)
from storefront.auth import Principal
from storefront.config import Settings
from storefront.content import RecommendationService
from storefront.content.images import MAX_IMAGE_BYTES
from storefront.errors import ValidationFailed
from storefront.storage import MediaStore

router = APIRouter(prefix="/api/recommendation", tags=["recommendation"])


def get_service(
    db: Database[dict[str, Any]] = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    media: MediaStore = Depends(get_media),
) -> RecommendationService:
    return RecommendationService(db, settings, media)


@router.get("")
def get_section(
    include_inactive: bool = Query(False, alias="includeInactive"),
    principal: Principal = Depends(get_principal),
    service: RecommendationService = Depends(get_service),
) -> dict[str, Any]:
    return service.get(principal, include_inactive=include_inactive)


@router.post("")
def save_section(
    body: dict[str, Any] = Body(...),
    principal: Principal = Depends(get_principal),
    service: RecommendationService = Depends(get_service),
) -> dict[str, Any]:
    return service.save(principal, body)


@router.put("", dependencies=[Depends(check_upload_quota)])
def upload_section_image(
    image_type: str | None = Form(None, alias="imageType"),
    sub_image_index: str | None = Form(None, alias="subImageIndex"),
    image: UploadFile | None = File(None),
    principal: Principal = Depends(get_principal),
    service: RecommendationService = Depends(get_service),
) -> dict[str, Any]:
    return service.upload_image(principal, image_type, sub_image_index, read_upload(image, MAX_IMAGE_BYTES))


@router.delete("")
def change_section(
    action: str | None = None,
    image_type: str | None = Query(None, alias="imageType"),
    sub_image_index: str | None = Query(None, alias="subImageIndex"),
    principal: Principal = Depends(get_principal),
    service: RecommendationService = Depends(get_service),
) -> dict[str, Any]:
    if action == "toggle":
        return service.toggle(principal)
    if action == "deleteImage":
        return service.delete_image(principal, image_type, sub_image_index)
    raise ValidationFailed(f"Unknown action: {action}")
