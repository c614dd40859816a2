"""
/api/products: catalog reads, writes, taxonomy actions and images.
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
from storefront.catalog import ProductQuery, ProductService
from storefront.catalog.products import DEFAULT_PAGE_SIZE
from storefront.config import Settings
from storefront.errors import ValidationFailed
from storefront.storage import MediaStore

router = APIRouter(prefix="/api/products", tags=["products"])

TAXONOMY_ACTIONS = ("add_category", "add_subcategory", "delete_category", "delete_subcategory")


def get_service(
    db: Database[dict[str, Any]] = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    media: MediaStore = Depends(get_media),
) -> ProductService:
    return ProductService(db, settings, media)


@router.get("")
def read_products(
    product_id: str | None = Query(None, alias="id"),
    barcode: str | None = None,
    category: str | None = None,
    subcategory: str | None = None,
    search: str | None = None,
    status: str | None = None,
    branch: str | None = None,
    limit: int = DEFAULT_PAGE_SIZE,
    page: int = 1,
    in_stock: bool = Query(False, alias="inStock"),
    categories_only: bool = Query(False, alias="getCategoriesOnly"),
    branches_only: bool = Query(False, alias="getBranchesOnly"),
    principal: Principal = Depends(get_principal),
    service: ProductService = Depends(get_service),
) -> dict[str, Any]:
    if categories_only:
        return service.categories()
    if branches_only:
        return service.stock_branches()
    if barcode and barcode.strip():
        return service.find_by_barcode(principal, barcode, status)
    if product_id is not None:
        return service.get_product(principal, product_id)
    return service.list_products(
        principal,
        ProductQuery(
            category=category,
            subcategory=subcategory,
            search=search,
            status=status,
            branch=branch,
            in_stock=in_stock,
            page=page,
            limit=limit,
        ),
    )


@router.post("")
def write_product(
    body: dict[str, Any] = Body(...),
    principal: Principal = Depends(get_principal),
    service: ProductService = Depends(get_service),
):
    """Create by default; ``action`` selects update or a taxonomy change."""
    action = body.get("action")
    if action in TAXONOMY_ACTIONS:
        return service.run_taxonomy_action(principal, action, body)
    if action == "update":
        product = service.update_product(principal, body)
        return {"message": "Product updated successfully", "product": product.to_api()}
    if action not in (None, "", "create"):
        raise ValidationFailed(f"Unknown action: {action}")

    product = service.create_product(principal, body)
    return JSONResponse(
        {"message": "Product created successfully", "product": product.to_api()},
        status_code=201,
    )


@router.put("", dependencies=[Depends(check_upload_quota)])
def upload_images(
    product_id: str | None = Form(None, alias="productId"),
    images: list[UploadFile] | None = File(None),
    principal: Principal = Depends(get_principal),
    service: ProductService = Depends(get_service),
) -> dict[str, Any]:
    max_bytes = service.max_upload_bytes(principal)
    files = [read_upload(f, max_bytes) for f in images or []]
    return service.attach_images(principal, product_id, files)


@router.delete("")
def delete_product(
    product_id: str | None = Query(None, alias="productId"),
    image_public_id: str | None = Query(None, alias="imagePublicId"),
    principal: Principal = Depends(get_principal),
    service: ProductService = Depends(get_service),
) -> dict[str, Any]:
    if image_public_id:
        return service.delete_image(principal, product_id, image_public_id)
    return service.delete_product(principal, product_id)
