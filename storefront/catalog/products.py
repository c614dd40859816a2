"""
Product access: role-aware reads, catalog writes, image attach and delete.
"""

import math
import time
from dataclasses import dataclass
from typing import Any

import structlog
from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import PyMongoError

from storefront.auth import Principal, require_role
from storefront.catalog.shaping import branch_scope, shape_product, status_filter
from storefront.catalog.taxonomy import Taxonomy
from storefront.catalog.validation import (
    ProductInput,
    escape_pattern,
    parse_payload,
    sanitize_filename,
    sanitize_search,
)
from storefront.config import Settings
from storefront.db.repositories import (
    CategoryRepository,
    ProductRepository,
    SettingsRepository,
)
from storefront.db.repositories.products import exact_ci
from storefront.errors import (
    IntegrityViolation,
    MediaStoreError,
    NotFound,
    UpstreamError,
    ValidationFailed,
)
from storefront.models import (
    CATALOG_WRITE_ROLES,
    ProductDoc,
    ProductImage,
    Role,
    parse_object_id,
    stock_key,
    utc_now,
)
from storefront.storage import MediaPaths, MediaStore, delete_quietly, fill_image

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
ADMIN_ONLY = frozenset({Role.ADMIN})
LARGE_UPLOAD_ROLES = frozenset({Role.ADMIN, Role.MODERATOR})


@dataclass
class ProductQuery:
    """Filters accepted by the product listing."""

    category: str | None = None
    subcategory: str | None = None
    search: str | None = None
    status: str | None = None
    branch: str | None = None
    in_stock: bool = False
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE


@dataclass
class UploadedFile:
    """One file of a multipart upload, already read into memory."""

    filename: str
    content_type: str
    data: bytes


def pagination(page: int, limit: int, total: int, returned: int) -> dict[str, Any]:
    skip = (page - 1) * limit
    return {
        "currentPage": page,
        "totalPages": math.ceil(total / limit) if limit else 1,
        "totalProducts": total,
        "hasNextPage": skip + returned < total,
        "hasPrevPage": page > 1,
    }


def require_object_id(value: Any, label: str = "product ID") -> ObjectId:
    if not value:
        raise ValidationFailed(f"{label[0].upper()}{label[1:]} is required")
    oid = parse_object_id(value.strip()) if isinstance(value, str) else None
    if oid is None:
        raise ValidationFailed(f"Invalid {label}")
    return oid


def timestamp_ms() -> int:
    return int(time.time() * 1000)


class ProductService:
    """Operations behind ``/api/products``."""

    def __init__(self, db: Database[dict[str, Any]], settings: Settings, media: MediaStore):
        self.settings = settings
        self.media = media
        self.products = ProductRepository(db)
        self.registry = SettingsRepository(db)
        self.taxonomy = Taxonomy(CategoryRepository(db), self.products)

    def known_branches(self) -> list[str]:
        return self.registry.get_branches(self.settings.default_branches)

    # Reads

    def categories(self) -> dict[str, Any]:
        return {"categories": self.taxonomy.merged()}

    def stock_branches(self) -> dict[str, Any]:
        branches = self.products.stock_branches()
        return {"branches": branches or list(self.settings.default_branches)}

    def find_by_barcode(self, principal: Principal, barcode: str, status: str | None = None) -> dict[str, Any]:
        branch_scope(principal, None)
        eligibility = status_filter(principal, status)
        product = self.products.get_by_barcode(barcode.strip(), eligibility)
        products = [shape_product(product, principal)] if product else []
        return {
            "products": products,
            "pagination": pagination(1, 1, len(products), len(products)),
        }

    def get_product(self, principal: Principal, product_id: str) -> dict[str, Any]:
        oid = require_object_id(product_id)
        branch_scope(principal, None)
        product = self.products.get_by_id(oid, status_filter(principal, None))
        if product is None:
            raise NotFound("Product not found")
        return shape_product(product, principal)

    def list_products(self, principal: Principal, query: ProductQuery) -> dict[str, Any]:
        if not 1 <= query.limit <= MAX_PAGE_SIZE:
            raise ValidationFailed(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
        if query.page < 1:
            raise ValidationFailed("Page must be 1 or greater")

        branch = branch_scope(principal, query.branch)
        search = sanitize_search(query.search)

        conditions: list[dict[str, Any]] = []
        eligibility = status_filter(principal, query.status)
        if eligibility:
            conditions.append(eligibility)
        if query.category and query.category.strip():
            conditions.append({"category": exact_ci(query.category.strip())})
        if query.subcategory and query.subcategory.strip():
            conditions.append({"subcategory": exact_ci(query.subcategory.strip())})
        if search:
            pattern = {"$regex": escape_pattern(search), "$options": "i"}
            conditions.append({
                "$or": [
                    {field: pattern}
                    for field in ("name", "description", "category", "subcategory", "brand", "barcode", "tags")
                ]
            })
        if query.in_stock:
            if branch:
                conditions.append({f"stock.{stock_key(branch)}": {"$gt": 0}})
            else:
                conditions.append({
                    "$or": [{f"stock.{stock_key(b)}": {"$gt": 0}} for b in self.known_branches()]
                })

        mongo_query: dict[str, Any] = {"$and": conditions} if conditions else {}
        total = self.products.count(mongo_query)
        skip = (query.page - 1) * query.limit
        products = self.products.find(mongo_query, skip=skip, limit=query.limit)

        logger.debug(
            "Products listed",
            role=principal.role.value,
            total=total,
            returned=len(products),
        )
        return {
            "products": [shape_product(p, principal) for p in products],
            "pagination": pagination(query.page, query.limit, total, len(products)),
        }

    # Writes

    def _check_taxonomy(self, data: ProductInput) -> None:
        if not self.taxonomy.contains(data.category):
            raise ValidationFailed(f'Unknown category "{data.category}"')
        if data.subcategory and not self.taxonomy.contains(data.category, data.subcategory):
            raise ValidationFailed(f'Unknown subcategory "{data.subcategory}" for category "{data.category}"')

    def create_product(self, principal: Principal, body: dict[str, Any]) -> ProductDoc:
        require_role(principal, CATALOG_WRITE_ROLES, "create products")
        data = parse_payload(ProductInput, body)
        self._check_taxonomy(data)

        if data.barcode and self.products.barcode_taken(data.barcode):
            raise IntegrityViolation("Barcode already exists for another product")

        branches = data.branches or self.known_branches()
        stock = {stock_key(b): 0 for b in branches}
        stock.update(data.stock or {})

        now = utc_now()
        product = ProductDoc(
            **data.model_dump(exclude={"stock", "branches", "id", "image_order"}),
            stock=stock,
            created_at=now,
            updated_at=now,
            created_by=principal.actor,
            updated_by=principal.actor,
        )
        product.id = ObjectId(self.products.create(product))
        logger.info("Product created", product_id=str(product.id), actor=principal.actor)
        return product

    def update_product(self, principal: Principal, body: dict[str, Any]) -> ProductDoc:
        require_role(principal, CATALOG_WRITE_ROLES, "update products")
        oid = require_object_id(body.get("id"))
        data = parse_payload(ProductInput, body)

        existing = self.products.get_by_id(oid)
        if existing is None:
            raise NotFound("Product not found")

        if (data.category.lower(), data.subcategory.lower()) != (
            existing.category.lower(),
            existing.subcategory.lower(),
        ):
            self._check_taxonomy(data)

        if data.barcode and data.barcode != existing.barcode and self.products.barcode_taken(data.barcode, exclude_id=oid):
            raise IntegrityViolation("Barcode already exists for another product")

        updates = ProductDoc(
            **data.model_dump(exclude={"stock", "branches", "id", "image_order"})
        ).to_mongo()
        for key in ("_id", "stock", "images", "createdAt", "createdBy", "updatedAt"):
            updates.pop(key, None)
        # Attribute maps are replaced only when the body carries them
        for field, key in (("specifications", "specifications"), ("branch_specifications", "branchSpecifications")):
            if field not in data.model_fields_set:
                updates.pop(key, None)
        updates["updatedBy"] = principal.actor

        if data.stock is not None:
            updates["stock"] = data.stock

        if data.image_order is not None:
            kept = [entry for entry in data.image_order if entry.public_id and entry.url]
            kept = kept[: self.settings.product_max_images]
            if kept:
                updates["images"] = [
                    ProductImage(
                        url=entry.url,
                        public_id=entry.public_id,
                        alt=entry.alt or f"Product image {i}",
                    ).model_dump(by_alias=True)
                    for i, entry in enumerate(kept, start=1)
                ]

        if not self.products.update_fields(oid, updates):
            raise NotFound("Product not found")

        logger.info("Product updated", product_id=str(oid), actor=principal.actor)
        return self.products.get_by_id(oid)

    def run_taxonomy_action(self, principal: Principal, action: str, body: dict[str, Any]) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage categories")
        name = body.get("categoryName")
        sub = body.get("subcategoryName")

        if action == "add_category":
            row = self.taxonomy.add_category(name, body.get("subcategories"))
            return {"message": "Category added successfully", "category": row.to_api() if row else None}
        if action == "add_subcategory":
            self.taxonomy.add_subcategory(name, sub)
            return {"message": "Subcategory added successfully"}
        if action == "delete_category":
            self.taxonomy.delete_category(name)
            return {"message": "Category deleted successfully"}
        if action == "delete_subcategory":
            self.taxonomy.delete_subcategory(name, sub)
            return {"message": "Subcategory deleted successfully"}
        raise ValidationFailed(f"Unknown action: {action}")

    # Images

    def max_upload_bytes(self, principal: Principal) -> int:
        if principal.role in LARGE_UPLOAD_ROLES:
            return self.settings.upload_max_bytes_privileged
        return self.settings.upload_max_bytes_default

    def attach_images(self, principal: Principal, product_id: str | None, files: list[UploadedFile]) -> dict[str, Any]:
        """
        Upload files and append them to a product's images.

        Each file succeeds or fails on its own. If the database write fails,
        everything uploaded by this call is removed from the media store.
        """
        require_role(principal, CATALOG_WRITE_ROLES, "upload product images")
        oid = require_object_id(product_id)

        if not files:
            raise ValidationFailed("No images provided")
        if len(files) > self.settings.upload_max_files:
            raise ValidationFailed(f"At most {self.settings.upload_max_files} images can be uploaded at once")

        product = self.products.get_by_id(oid)
        if product is None:
            raise NotFound("Product not found")

        max_bytes = self.max_upload_bytes(principal)
        free_slots = self.settings.product_max_images - len(product.images)
        size = self.settings.product_image_size
        ts = timestamp_ms()

        uploaded: list[ProductImage] = []
        errors: list[dict[str, str]] = []
        for index, upload in enumerate(files):
            safe_name = sanitize_filename(upload.filename)
            try:
                if not (upload.content_type or "").startswith("image/"):
                    raise ValueError("File must be an image")
                if len(upload.data) > max_bytes:
                    raise ValueError(f"File exceeds the {max_bytes // (1024 * 1024)}MB limit")
                if len(uploaded) >= free_slots:
                    raise ValueError(f"Product already has the maximum of {self.settings.product_max_images} images")

                prepared = fill_image(upload.data, size, size, quality=self.settings.media_quality)
                public_id = MediaPaths.product_image(str(oid), ts, index, prepared.extension)
                asset = self.media.upload(public_id, prepared.data, prepared.content_type)
            except (ValueError, MediaStoreError) as e:
                logger.warning("Image rejected", product_id=str(oid), file=safe_name, error=str(e))
                errors.append({"fileName": safe_name, "error": str(e)})
                continue

            position = len(product.images) + len(uploaded) + 1
            uploaded.append(ProductImage(
                url=asset.url,
                public_id=asset.public_id,
                alt=f"{product.name} - {product.category} image {position}",
            ))

        if not uploaded:
            raise ValidationFailed("No images were uploaded successfully", errors=errors)

        try:
            saved = self.products.push_images(oid, uploaded, principal.actor)
        except PyMongoError as e:
            logger.error("Image attach failed, removing uploaded assets", product_id=str(oid), error=str(e))
            saved = False
        if not saved:
            delete_quietly(self.media, [img.public_id for img in uploaded])
            raise UpstreamError("Failed to save uploaded images")

        logger.info(
            "Images attached",
            product_id=str(oid),
            uploaded=len(uploaded),
            failed=len(errors),
        )
        result: dict[str, Any] = {
            "message": f"{len(uploaded)} image(s) uploaded successfully",
            "uploadedImages": [img.model_dump(by_alias=True) for img in uploaded],
        }
        if errors:
            result["uploadErrors"] = errors
        return result

    def delete_image(self, principal: Principal, product_id: str | None, public_id: str) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "delete product images")
        oid = require_object_id(product_id)
        if not MediaPaths.is_valid_id(public_id):
            raise ValidationFailed("Invalid image ID format")

        product = self.products.get_by_id(oid)
        if product is None:
            raise NotFound("Product not found")
        if not any(img.public_id == public_id for img in product.images):
            raise NotFound("Image not found on this product")

        delete_quietly(self.media, [public_id])
        self.products.pull_image(oid, public_id, principal.actor)
        logger.info("Product image deleted", product_id=str(oid), public_id=public_id)
        return {"message": "Image deleted successfully"}

    def delete_product(self, principal: Principal, product_id: str | None) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "delete products")
        oid = require_object_id(product_id)

        product = self.products.get_by_id(oid)
        if product is None:
            raise NotFound("Product not found")

        failed = delete_quietly(self.media, [img.public_id for img in product.images])
        self.products.delete(oid)
        logger.info(
            "Product deleted",
            product_id=str(oid),
            images=len(product.images),
            image_cleanup_failures=len(failed),
        )
        return {"message": "Product deleted successfully"}
