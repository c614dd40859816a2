"""
/api/featured-categories: home page category tiles.
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
from storefront.content import FeaturedCategoryService
from storefront.content.images import MAX_IMAGE_BYTES
from storefront.errors import ValidationFailed
from storefront.storage import MediaStore

router = APIRouter(prefix="/api/featured-categories", tags=["featured-categories"])


def get_service(
    db: Database[dict[str, Any]] = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    media: MediaStore = Depends(get_media),
) -> FeaturedCategoryService:
    return FeaturedCategoryService(db, settings, media)


@router.get("")
def list_tiles(
    include_inactive: bool = Query(False, alias="includeInactive"),
    product_categories: bool = Query(False, alias="getProductCategories"),
    principal: Principal = Depends(get_principal),
    service: FeaturedCategoryService = Depends(get_service),
) -> dict[str, Any]:
    if product_categories:
        return service.product_categories()
    return service.list_tiles(principal, include_inactive=include_inactive)


@router.post("")
def write_tile(
    body: dict[str, Any] = Body(...),
    principal: Principal = Depends(get_principal),
    service: FeaturedCategoryService = Depends(get_service),
):
    action = body.get("action")
    if action == "create":
        return JSONResponse(service.create(principal, body.get("categoryData")), status_code=201)
    if action == "update":
        return service.update(principal, body.get("id"), body.get("categoryData"))
    if action == "reorder":
        return service.reorder(principal, body.get("categories"))
    raise ValidationFailed(f"Unknown action: {action}")


@router.put("", dependencies=[Depends(check_upload_quota)])
def upload_tile_image(
    category_id: str | None = Form(None, alias="categoryId"),
    image_type: str | None = Form(None, alias="imageType"),
    image: UploadFile | None = File(None),
    principal: Principal = Depends(get_principal),
    service: FeaturedCategoryService = Depends(get_service),
) -> dict[str, Any]:
    return service.upload_image(principal, category_id, image_type, read_upload(image, MAX_IMAGE_BYTES))


@router.delete("")
def delete_tile(
    category_id: str | None = Query(None, alias="id"),
    action: str = "delete",
    principal: Principal = Depends(get_principal),
    service: FeaturedCategoryService = Depends(get_service),
) -> dict[str, Any]:
    if action == "toggle":
        return service.toggle(principal, category_id)
    if action == "delete":
        return service.delete(principal, category_id)
    raise ValidationFailed(f"Unknown action: {action}")
