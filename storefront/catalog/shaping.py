"""
Role-based visibility of product documents.

Every product leaving the API passes through ``shape_product``; the table
below is the only place that decides which fields each role may see.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from storefront.auth import Principal
from storefront.errors import PermissionDenied, ValidationFailed
from storefront.models import ProductDoc, ProductStatus, Role, stock_key


class StockView(str, Enum):
    HIDDEN = "hidden"
    OWN_BRANCH = "own_branch"
    FULL = "full"


@dataclass(frozen=True)
class RoleView:
    active_only: bool
    hidden_fields: frozenset[str]
    stock: StockView


_CUSTOMER_VIEW = RoleView(
    active_only=True,
    hidden_fields=frozenset({"stock", "barcode", "status", "createdBy", "updatedBy"}),
    stock=StockView.HIDDEN,
)

ROLE_VIEWS: dict[Role, RoleView] = {
    Role.PUBLIC: _CUSTOMER_VIEW,
    Role.USER: _CUSTOMER_VIEW,
    Role.MODERATOR: RoleView(
        active_only=False,
        hidden_fields=frozenset({"createdBy", "updatedBy"}),
        stock=StockView.OWN_BRANCH,
    ),
    Role.MANAGER: RoleView(active_only=False, hidden_fields=frozenset(), stock=StockView.FULL),
    Role.ADMIN: RoleView(active_only=False, hidden_fields=frozenset(), stock=StockView.FULL),
}


def view_for(principal: Principal) -> RoleView:
    return ROLE_VIEWS.get(principal.role, _CUSTOMER_VIEW)


def status_filter(principal: Principal, status: str | None) -> dict[str, Any]:
    """
    Query fragment limiting which statuses the caller may see.

    Customers only ever see active products, whatever they ask for. Staff see
    every status unless they pass one explicitly.
    """
    if view_for(principal).active_only:
        return {"status": ProductStatus.ACTIVE.value}
    if not status or status == "all":
        return {}
    try:
        return {"status": ProductStatus(status.strip().lower()).value}
    except ValueError:
        raise ValidationFailed("Invalid status. Use active, inactive or draft") from None


def branch_scope(principal: Principal, requested: str | None) -> str | None:
    """
    Branch a request is allowed to filter on.

    Moderators are pinned to their assigned branch.
    """
    requested = requested.strip().lower() if requested and requested.strip() else None
    if view_for(principal).stock != StockView.OWN_BRANCH:
        return requested
    if not principal.branch:
        raise PermissionDenied("No branch is assigned to your account")
    if requested and requested != principal.branch:
        raise PermissionDenied(
            "Access denied. You can only view your assigned branch",
            allowedBranch=principal.branch,
        )
    return principal.branch


def shape_product(product: ProductDoc, principal: Principal) -> dict[str, Any]:
    """API representation of a product for this caller."""
    view = view_for(principal)
    data = product.to_api()

    if view.stock == StockView.OWN_BRANCH:
        # Moderators without a branch are rejected before any query runs
        key = stock_key(principal.branch or "")
        data["stock"] = {key: product.stock.get(key, 0)}

    for field in view.hidden_fields:
        data.pop(field, None)
    return data
