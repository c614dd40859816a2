"""
Branch inventory: counter sales and stock requisitions between branches.
"""

from storefront.inventory.requisitions import RequisitionService
from storefront.inventory.sales import SaleService, generate_sale_id

__all__ = ["SaleService", "RequisitionService", "generate_sale_id"]
