"""
Point-of-sale: recording counter sales against branch stock.

Stock is taken item by item with conditional decrements; if any item
runs short, the decrements already applied are put back.
"""

import math
import random
import string
from datetime import datetime, timedelta, timezone
from typing import Any, NamedTuple

import structlog
from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import PyMongoError

from storefront.accounts.audit import AuditTrail
from storefront.auth import Principal, require_role
from storefront.catalog.branches import BranchRegistry
from storefront.catalog.products import timestamp_ms
from storefront.config import Settings
from storefront.db.repositories import ProductRepository, SaleRepository
from storefront.errors import Conflict, NotFound, PermissionDenied, UpstreamError, ValidationFailed
from storefront.models import (
    STAFF_ROLES,
    PaymentPart,
    Role,
    SaleCustomer,
    SaleDoc,
    SaleItem,
    SalePayment,
    SaleStatus,
    parse_object_id,
    stock_key,
)
from storefront.sanitize import sanitize_text

logger = structlog.get_logger(__name__)

MAX_SALE_ITEMS = 50
MAX_QUANTITY = 999
MAX_PAGE_SIZE = 100
SALE_ID_ATTEMPTS = 5


def generate_sale_id() -> str:
    """``SALE-`` + millisecond timestamp + short random suffix."""
    suffix = "".join(random.choices(string.digits + string.ascii_uppercase, k=4))
    return f"SALE-{timestamp_ms()}-{suffix}"


def whole_number(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _amount(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if math.isfinite(value) and value >= 0 else None


def parse_day(value: str | None, end: bool = False) -> datetime | None:
    """
    ISO date or datetime from a query string.

    A bare date used as an end bound covers the whole day.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise ValidationFailed(f"Invalid date: {value}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    if end and len(value) == 10:
        parsed += timedelta(days=1)
    return parsed


class _Line(NamedTuple):
    """One validated sale line before stock is taken."""

    product_id: ObjectId
    item: SaleItem
    key: str


class SaleService:
    """Operations behind ``/api/sales``."""

    def __init__(self, db: Database[dict[str, Any]], settings: Settings, audit: AuditTrail):
        self.sales = SaleRepository(db)
        self.products = ProductRepository(db)
        self.branches = BranchRegistry(db, settings)
        self.audit = audit

    def _sale_branch(self, principal: Principal, requested: Any) -> str:
        if principal.role == Role.MODERATOR:
            if not principal.branch:
                raise PermissionDenied("No branch is assigned to your account")
            if requested and str(requested).strip().lower() != principal.branch:
                raise PermissionDenied("Access denied: You can only sell from your own branch")
            return principal.branch
        if not requested:
            raise ValidationFailed("Branch is required")
        return self.branches.require_known(requested)

    def _lines(self, items: Any, branch: str) -> list[_Line]:
        if not isinstance(items, list) or not items:
            raise ValidationFailed("Sale must contain at least one item")
        if len(items) > MAX_SALE_ITEMS:
            raise ValidationFailed(f"Sale cannot contain more than {MAX_SALE_ITEMS} items")

        key = stock_key(branch)
        lines = []
        for n, raw in enumerate(items, start=1):
            if not isinstance(raw, dict):
                raise ValidationFailed(f"Item {n}: Must be an object")
            product_id = parse_object_id(raw.get("productId"))
            if product_id is None:
                raise ValidationFailed(f"Item {n}: Invalid product ID")
            quantity = whole_number(raw.get("quantity"))
            if quantity is None or not 1 <= quantity <= MAX_QUANTITY:
                raise ValidationFailed(f"Item {n}: Quantity must be a whole number (1-{MAX_QUANTITY})")
            item_branch = raw.get("branch")
            if item_branch and str(item_branch).strip().lower() != branch:
                raise ValidationFailed(f"Item {n}: All items must come from the {branch} branch")
            options = raw.get("selectedOptions") or {}
            if not isinstance(options, dict):
                raise ValidationFailed(f"Item {n}: selectedOptions must be an object")

            product = self.products.get_by_id(product_id)
            if product is None:
                raise NotFound(f"Product not found: {product_id}")
            available = product.stock.get(key, 0)
            if available < quantity:
                raise Conflict(
                    f"Insufficient stock for {product.name} at {branch} branch. "
                    f"Available: {available}, Requested: {quantity}"
                )

            lines.append(_Line(
                product_id,
                SaleItem(
                    product_id=str(product_id),
                    product_name=product.name,
                    quantity=quantity,
                    unit_price=product.price,
                    total_price=round(product.price * quantity, 2),
                    selected_options=options,
                ),
                key,
            ))
        return lines

    def _payment(self, raw: Any, total: float) -> tuple[SalePayment, str]:
        methods = raw.get("methods") if isinstance(raw, dict) else None
        if not isinstance(methods, list) or not methods:
            raise ValidationFailed("At least one payment method is required")

        parts = []
        for entry in methods:
            method = sanitize_text(entry.get("method"), 30) if isinstance(entry, dict) else None
            amount = _amount(entry.get("amount")) if isinstance(entry, dict) else None
            if not method or amount is None:
                raise ValidationFailed("Each payment needs a method and a non-negative amount")
            parts.append(PaymentPart(method=method.lower(), amount=round(amount, 2)))

        paid = round(sum(p.amount for p in parts), 2)
        if paid < total:
            raise ValidationFailed(f"Payment of {paid} does not cover the sale total of {total}")
        kinds = {p.method for p in parts}
        payment_type = parts[0].method if len(kinds) == 1 else "mixed"
        return SalePayment(methods=parts, total_paid=paid, change=round(paid - total, 2)), payment_type

    def _restore(self, taken: list[_Line], actor: str) -> None:
        for line in taken:
            try:
                self.products.move_stock(line.product_id, {line.key: line.item.quantity}, actor)
            except PyMongoError as e:
                logger.error(
                    "Stock restore failed",
                    product_id=str(line.product_id),
                    key=line.key,
                    quantity=line.item.quantity,
                    error=str(e),
                )

    def _unique_sale_id(self) -> str:
        for _ in range(SALE_ID_ATTEMPTS):
            sale_id = generate_sale_id()
            if not self.sales.exists(sale_id):
                return sale_id
        raise UpstreamError("Failed to generate unique sale ID")

    def record_sale(self, principal: Principal, body: dict[str, Any]) -> dict[str, Any]:
        """Take stock for every line, then store the sale."""
        require_role(principal, STAFF_ROLES, "record sales")
        if not isinstance(body, dict):
            raise ValidationFailed("Request body must be an object")

        branch = self._sale_branch(principal, body.get("branch"))
        lines = self._lines(body.get("items"), branch)
        total = round(sum(line.item.total_price for line in lines), 2)
        payment, payment_type = self._payment(body.get("payment"), total)

        customer_raw = body.get("customer") if isinstance(body.get("customer"), dict) else {}
        customer = SaleCustomer(
            name=sanitize_text(customer_raw.get("name"), 100) or "",
            phone=sanitize_text(customer_raw.get("phone"), 20) or "",
        )

        taken: list[_Line] = []
        for line in lines:
            if not self.products.move_stock(line.product_id, {line.key: -line.item.quantity}, principal.actor):
                self._restore(taken, principal.actor)
                current = self.products.get_by_id(line.product_id)
                available = current.stock.get(line.key, 0) if current else 0
                raise Conflict(
                    f"Insufficient stock for {line.item.product_name} at {branch} branch. "
                    f"Available: {available}, Requested: {line.item.quantity}"
                )
            taken.append(line)

        sale = SaleDoc(
            sale_id=self._unique_sale_id(),
            branch=branch,
            items=[line.item for line in lines],
            customer=customer,
            total_amount=total,
            payment=payment,
            payment_type=payment_type,
            notes=sanitize_text(body.get("notes"), 500) or "",
            cashier=principal.name or principal.actor,
            cashier_email=principal.email,
            cashier_role=principal.role.value,
        )
        try:
            sale.id = parse_object_id(self.sales.create(sale))
        except PyMongoError as e:
            self._restore(taken, principal.actor)
            raise UpstreamError("Failed to record sale") from e

        self.audit.record(
            "SALE_RECORDED",
            principal,
            saleId=sale.sale_id,
            branch=branch,
            totalAmount=total,
            itemCount=len(lines),
            paymentType=payment_type,
        )
        logger.info("Sale recorded", sale_id=sale.sale_id, branch=branch, total=total)
        return {
            "success": True,
            "message": "Sale processed successfully",
            "saleId": sale.sale_id,
            "sale": sale.to_api(),
        }

    def list_sales(
        self,
        principal: Principal,
        start_date: str | None = None,
        end_date: str | None = None,
        payment_type: str | None = None,
        status: str | None = None,
        branch: str | None = None,
        limit: int = 50,
        page: int = 1,
    ) -> dict[str, Any]:
        require_role(principal, STAFF_ROLES, "view sales")
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        page = max(page, 1)

        query: dict[str, Any] = {}
        start, end = parse_day(start_date), parse_day(end_date, end=True)
        if start or end:
            query["createdAt"] = {}
            if start:
                query["createdAt"]["$gte"] = start
            if end:
                query["createdAt"]["$lt" if end_date and len(end_date) == 10 else "$lte"] = end
        if payment_type:
            query["paymentType"] = (sanitize_text(payment_type, 30) or "").lower()
        if status:
            if status not in {s.value for s in SaleStatus}:
                raise ValidationFailed(f"Invalid status: {status}")
            query["status"] = status

        if principal.role == Role.MODERATOR:
            if not principal.branch:
                raise PermissionDenied("No branch is assigned to your account")
            query["branch"] = principal.branch
        elif branch:
            query["branch"] = branch.strip().lower()

        total = self.sales.count(query)
        sales = self.sales.find(query, skip=(page - 1) * limit, limit=limit)
        return {
            "success": True,
            "sales": [s.to_api() for s in sales],
            "pagination": {
                "currentPage": page,
                "totalPages": math.ceil(total / limit),
                "totalCount": total,
                "hasNextPage": (page - 1) * limit + len(sales) < total,
                "hasPrevPage": page > 1,
            },
        }
