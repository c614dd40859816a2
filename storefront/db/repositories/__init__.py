"""
Repository layer for database operations.
"""

from storefront.db.repositories.categories import CategoryRepository
from storefront.db.repositories.featured import FeaturedCategoryRepository
from storefront.db.repositories.inventory import RequisitionRepository, SaleRepository
from storefront.db.repositories.orders import OrderRepository
from storefront.db.repositories.products import ProductRepository
from storefront.db.repositories.settings import SettingsRepository
from storefront.db.repositories.slides import SlideRepository
from storefront.db.repositories.users import AuditLogRepository, UserRepository

__all__ = [
    "ProductRepository",
    "CategoryRepository",
    "SettingsRepository",
    "OrderRepository",
    "FeaturedCategoryRepository",
    "SlideRepository",
    "SaleRepository",
    "RequisitionRepository",
    "UserRepository",
    "AuditLogRepository",
]
