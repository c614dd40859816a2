"""
/api/slider: home page hero slides.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, File, Form, Query, UploadFile
from fastapi.responses import JSONResponse
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
from storefront.content import SliderService
from storefront.content.images import MAX_IMAGE_BYTES
from storefront.errors import ValidationFailed
from storefront.storage import MediaStore

router = APIRouter(prefix="/api/slider", tags=["slider"])


def get_service(
    db: Database[dict[str, Any]] = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    media: MediaStore = Depends(get_media),
) -> SliderService:
    return SliderService(db, settings, media)


@router.get("")
def list_slides(
    slide_id: str | None = Query(None, alias="id"),
    include_inactive: bool = Query(False, alias="includeInactive"),
    principal: Principal = Depends(get_principal),
    service: SliderService = Depends(get_service),
) -> dict[str, Any]:
    if slide_id:
        return service.get_slide(principal, slide_id, include_inactive=include_inactive)
    return service.list_slides(principal, include_inactive=include_inactive)


@router.post("")
def write_slide(
    body: dict[str, Any] = Body(...),
    principal: Principal = Depends(get_principal),
    service: SliderService = Depends(get_service),
):
    action = body.get("action")
    if action == "create":
        return JSONResponse(service.create(principal, body.get("slideData")), status_code=201)
    if action == "update":
        return service.update(principal, body.get("id"), body.get("slideData"))
    if action == "reorder":
        return service.reorder(principal, body.get("slides"))
    raise ValidationFailed(f"Unknown action: {action}")


@router.put("", dependencies=[Depends(check_upload_quota)])
def upload_slide_image(
    slide_id: str | None = Form(None, alias="slideId"),
    image: UploadFile | None = File(None),
    principal: Principal = Depends(get_principal),
    service: SliderService = Depends(get_service),
) -> dict[str, Any]:
    return service.upload_image(principal, slide_id, read_upload(image, MAX_IMAGE_BYTES))


@router.delete("")
def delete_slide(
    slide_id: str | None = Query(None, alias="id"),
    action: str = "delete",
    principal: Principal = Depends(get_principal),
    service: SliderService = Depends(get_service),
) -> dict[str, Any]:
    if action == "toggle":
        return service.toggle(principal, slide_id)
    if action == "delete":
        return service.delete(principal, slide_id)
    raise ValidationFailed(f"Unknown action: {action}")
