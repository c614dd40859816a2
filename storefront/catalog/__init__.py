"""
Catalog domain: products, taxonomy and role-based visibility.
"""

from storefront.catalog.branches import BranchRegistry
from storefront.catalog.products import ProductQuery, ProductService, UploadedFile
from storefront.catalog.shaping import ROLE_VIEWS, shape_product
from storefront.catalog.taxonomy import DEFAULT_CATEGORIES, Taxonomy, merge_categories

__all__ = [
    "BranchRegistry",
    "ProductService",
    "ProductQuery",
    "UploadedFile",
    "ROLE_VIEWS",
    "shape_product",
    "Taxonomy",
    "DEFAULT_CATEGORIES",
    "merge_categories",
]
