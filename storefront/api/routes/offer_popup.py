"""
/api/offer-popup: the site-wide promotional popup.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, File, UploadFile
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
from storefront.content import OfferPopupService
from storefront.content.images import MAX_IMAGE_BYTES
from storefront.storage import MediaStore

router = APIRouter(prefix="/api/offer-popup", tags=["offer-popup"])


def get_service(
    db: Database[dict[str, Any]] = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    media: MediaStore = Depends(get_media),
) -> OfferPopupService:
    return OfferPopupService(db, settings, media)


@router.get("")
def read_popup(
    admin: bool = False,
    principal: Principal = Depends(get_principal),
    service: OfferPopupService = Depends(get_service),
) -> dict[str, Any]:
    return service.get(principal, admin_view=admin)


@router.post("")
def save_popup(
    body: dict[str, Any] = Body(...),
    principal: Principal = Depends(get_principal),
    service: OfferPopupService = Depends(get_service),
) -> dict[str, Any]:
    return service.save(principal, body)


@router.put("", dependencies=[Depends(check_upload_quota)])
def upload_popup_image(
    image: UploadFile | None = File(None),
    principal: Principal = Depends(get_principal),
    service: OfferPopupService = Depends(get_service),
) -> dict[str, Any]:
    return service.upload_image(principal, read_upload(image, MAX_IMAGE_BYTES))


@router.patch("")
def set_popup_state(
    body: dict[str, Any] = Body(...),
    principal: Principal = Depends(get_principal),
    service: OfferPopupService = Depends(get_service),
) -> dict[str, Any]:
    return service.set_active(principal, body)


@router.delete("")
def delete_popup(
    principal: Principal = Depends(get_principal),
    service: OfferPopupService = Depends(get_service),
) -> dict[str, Any]:
    return service.delete(principal)
