"""
Order placement, role-scoped listing, status changes and cancellation.
"""

import math
import random
import string
import time
from datetime import timedelta
from typing import Any

import structlog
from pymongo.database import Database

from storefront.accounts.audit import AuditTrail
from storefront.auth import Principal, require_role
from storefront.db.repositories import OrderRepository
from storefront.errors import NotFound, PermissionDenied, UpstreamError, ValidationFailed
from storefront.models import (
    STAFF_ROLES,
    CustomerInfo,
    OrderDoc,
    OrderHistoryEntry,
    OrderItem,
    OrderStatus,
    OrderTotals,
    PaymentInfo,
    ProductSnapshot,
    Role,
    as_utc,
    parse_object_id,
    utc_now,
)
from storefront.sanitize import is_valid_email, sanitize_text

logger = structlog.get_logger(__name__)

MAX_ORDER_ITEMS = 50
MAX_QUANTITY = 999
MIN_ORDER_VALUE = 1
MAX_ORDER_VALUE = 5_000_000
MAX_DELIVERY_CHARGE = 1000
MAX_NOTES_LENGTH = 1000
MAX_ORDER_ID_LENGTH = 50
MAX_PAGE_SIZE = 100
ORDER_ID_ATTEMPTS = 5
USER_CANCEL_WINDOW = timedelta(minutes=5)
MAX_TRACK_EMAIL_LENGTH = 100

SORT_FIELDS = ("createdAt", "updatedAt", "orderId", "status", "totals.total")
FULL_ACCESS_ROLES = frozenset({Role.ADMIN, Role.MANAGER})
WALLET_FIELDS = {
    "bkash": "bkashNumber",
    "nagad": "nagadNumber",
    "rocket": "rocketNumber",
    "upay": "upayNumber",
}

CUSTOMER_FIELD_LIMITS = {
    "fullName": 100,
    "phone": 20,
    "address": 500,
    "city": 50,
    "postalCode": 20,
    "country": 50,
}

_BASE36 = string.digits + string.ascii_uppercase


def _base36(number: int) -> str:
    digits = ""
    while True:
        number, rem = divmod(number, 36)
        digits = _BASE36[rem] + digits
        if number == 0:
            return digits


def generate_order_id() -> str:
    """``VWV`` + base36 millisecond timestamp + random suffix."""
    suffix = "".join(random.choices(_BASE36, k=10))
    return f"VWV{_base36(int(time.time() * 1000))}{suffix}"


def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def visible_payment(payment: dict[str, Any], role: Role) -> dict[str, Any]:
    """Payment details a role may see."""
    if role in FULL_ACCESS_ROLES:
        return payment
    if role == Role.MODERATOR:
        return {k: v for k, v in payment.items() if k not in ("cardNumber", "cvv")}
    visible = {"method": payment.get("method")}
    for key in ("cardLast4", "cardName"):
        if payment.get(key):
            visible[key] = payment[key]
    return visible



def tracking_view(order: OrderDoc) -> dict[str, Any]:
    """The parts of an order shown on the public tracking page."""
    data = order.to_api()
    customer = data["customerInfo"]
    return {
        "orderId": data["orderId"],
        "status": data["status"],
        "orderType": data["orderType"],
        "createdAt": data["createdAt"],
        "updatedAt": data["updatedAt"],
        "customerInfo": {k: customer.get(k) for k in ("fullName", "email", "phone", "city", "country")},
        "items": [
            {
                "productId": item["productId"],
                "productName": item["product"]["name"],
                "brand": item["product"]["brand"],
                "quantity": item["quantity"],
                "price": item["product"]["price"],
                "itemTotal": item["itemTotal"],
                "selectedOptions": item["selectedOptions"],
                "product": {
                    k: item["product"][k]
                    for k in ("_id", "name", "brand", "category", "subcategory", "images")
                },
            }
            for item in data["items"]
        ],
        "totals": data["totals"],
        "paymentInfo": visible_payment(data["paymentInfo"], Role.USER),
        "shippingAddress": data["shippingAddress"],
        "trackingInfo": data["trackingInfo"],
        "deliveryDate": data["deliveryDate"],
        "orderHistory": [
            {k: entry[k] for k in ("status", "timestamp", "note")} for entry in data["orderHistory"]
        ],
        "branch": data["availableBranches"][0] if data["availableBranches"] else None,
        "orderNotes": data["orderNotes"],
    }

class OrderService:
    """Operations behind ``/api/orders``."""

    def __init__(self, db: Database[dict[str, Any]], audit: AuditTrail):
        self.orders = OrderRepository(db)
        self.audit = audit

    def _to_api(self, order: OrderDoc, role: Role) -> dict[str, Any]:
        data = order.to_api()
        data["paymentInfo"] = visible_payment(data.get("paymentInfo") or {}, role)
        return data

    def _moderator_branch(self, principal: Principal) -> str:
        if not principal.branch:
            raise PermissionDenied("No branch is assigned to your account")
        return principal.branch

    # Reads

    def list_orders(
        self,
        principal: Principal,
        order_id: str | None = None,
        status: str | None = None,
        customer_email: str | None = None,
        branch: str | None = None,
        limit: int = 20,
        page: int = 1,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> dict[str, Any]:
        require_role(principal, {Role.USER} | STAFF_ROLES, "view orders")

        order_id = (sanitize_text(order_id) or "")[:MAX_ORDER_ID_LENGTH]
        status = sanitize_text(status)
        customer_email = (sanitize_text(customer_email) or "").lower()
        branch = (sanitize_text(branch) or "").lower()
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        page = max(page, 1)

        query: dict[str, Any] = {}
        if order_id:
            query["orderId"] = order_id
        if status in {s.value for s in OrderStatus}:
            query["status"] = status
        if branch:
            query["availableBranches"] = branch

        if principal.role == Role.USER:
            own_email = (principal.email or "").lower()
            if customer_email and customer_email != own_email:
                raise PermissionDenied("Access denied: Cannot view other customers' orders")
            query["customerInfo.email"] = own_email
        else:
            if principal.role == Role.MODERATOR:
                query["availableBranches"] = self._moderator_branch(principal)
            if customer_email:
                query["customerInfo.email"] = customer_email

        sort_field = sort_by if sort_by in SORT_FIELDS else "createdAt"
        total = self.orders.count(query)
        orders = self.orders.find(
            query,
            sort_by=sort_field,
            descending=sort_order != "asc",
            skip=(page - 1) * limit,
            limit=limit,
        )

        self.audit.record(
            "ORDERS_ACCESSED",
            principal,
            queryParams={"orderId": order_id, "status": status, "customerEmail": customer_email, "branch": branch},
            resultCount=len(orders),
            totalAvailable=total,
        )

        return {
            "orders": [self._to_api(o, principal.role) for o in orders],
            "pagination": {
                "currentPage": page,
                "totalPages": math.ceil(total / limit),
                "totalOrders": total,
                "hasNextPage": (page - 1) * limit + len(orders) < total,
                "hasPrevPage": page > 1,
                "itemsPerPage": limit,
            },
            "userPermissions": {
                "canViewAll": principal.role in FULL_ACCESS_ROLES,
                "canModifyStatus": principal.role in STAFF_ROLES,
                "branch": principal.branch,
            },
        }

    # Placement

    def _parse_items(self, items: Any) -> list[OrderItem]:
        if not isinstance(items, list) or not items:
            raise ValidationFailed("Order must contain at least one item")
        if len(items) > MAX_ORDER_ITEMS:
            raise ValidationFailed(f"Order cannot contain more than {MAX_ORDER_ITEMS} items")

        parsed = []
        for n, item in enumerate(items, start=1):
            product = item.get("product") if isinstance(item, dict) else None
            if not isinstance(product, dict) or not product.get("_id"):
                raise ValidationFailed(f"Item {n}: Must have a valid product")

            quantity = _number(item.get("quantity"))
            if quantity is None or quantity != int(quantity) or not 1 <= quantity <= MAX_QUANTITY:
                raise ValidationFailed(f"Item {n}: Must have a valid quantity (1-{MAX_QUANTITY})")
            price = _number(product.get("price"))
            if price is None or price < 0:
                raise ValidationFailed(f"Item {n}: Must have a valid price")
            name = sanitize_text(product.get("name"))
            if not name:
                raise ValidationFailed(f"Item {n}: Product must have a name")

            branches = item.get("availableBranches") or []
            if not isinstance(branches, list) or not all(isinstance(b, str) for b in branches):
                raise ValidationFailed(f"Item {n}: availableBranches must be a list of branch names")
            options = item.get("selectedOptions") or {}
            if not isinstance(options, dict):
                raise ValidationFailed(f"Item {n}: selectedOptions must be an object")

            images = product.get("images") if isinstance(product.get("images"), list) else []
            parsed.append(OrderItem(
                product_id=str(product["_id"]),
                product=ProductSnapshot(
                    id=str(product["_id"]),
                    name=name,
                    price=price,
                    images=[img for img in images if isinstance(img, dict)],
                    brand=sanitize_text(product.get("brand")) or "",
                    category=sanitize_text(product.get("category")) or "",
                    subcategory=sanitize_text(product.get("subcategory")) or "",
                ),
                quantity=int(quantity),
                selected_options=options,
                available_branches=branches,
                item_total=round(price * int(quantity), 2),
            ))
        return parsed

    def _totals(self, items: list[OrderItem], delivery_charge: float) -> OrderTotals:
        subtotal = sum(item.product.price * item.quantity for item in items)
        total = subtotal + delivery_charge
        if not MIN_ORDER_VALUE <= total <= MAX_ORDER_VALUE:
            raise ValidationFailed(f"Order total must be between {MIN_ORDER_VALUE} and {MAX_ORDER_VALUE} BDT")
        return OrderTotals(
            subtotal=round(subtotal, 2),
            delivery_charge=round(delivery_charge, 2),
            total=round(total, 2),
            item_count=len(items),
            total_quantity=sum(item.quantity for item in items),
        )

    def _customer(self, raw: dict[str, Any]) -> CustomerInfo:
        fields = {
            key: sanitize_text(raw.get(key), limit) or ""
            for key, limit in CUSTOMER_FIELD_LIMITS.items()
        }
        fields["country"] = fields["country"] or "Bangladesh"
        email = (sanitize_text(raw.get("email")) or "").lower()
        return CustomerInfo.model_validate({**fields, "email": email})

    def _payment(self, raw: dict[str, Any]) -> PaymentInfo:
        method = sanitize_text(raw.get("method")) or ""
        if not method:
            raise ValidationFailed("Payment method is required")
        info: dict[str, Any] = {"method": method}
        if method in WALLET_FIELDS:
            field = WALLET_FIELDS[method]
            info[field] = (sanitize_text(raw.get(field)) or "")[:15]
        elif method == "card":
            digits = "".join(ch for ch in str(raw.get("cardNumber") or "") if ch.isdigit())
            info["cardLast4"] = digits[-4:]
            info["cardName"] = (sanitize_text(raw.get("cardName")) or "")[:50]
        return PaymentInfo.model_validate(info)

    def _unique_order_id(self) -> str:
        for _ in range(ORDER_ID_ATTEMPTS):
            order_id = generate_order_id()
            if not self.orders.exists(order_id):
                return order_id
        raise UpstreamError("Failed to generate unique order ID")

    def place_order(
        self,
        principal: Principal,
        body: dict[str, Any],
        client_ip: str | None = None,
        user_agent: str | None = None,
    ) -> dict[str, Any]:
        """Create an order for a guest or a signed-in customer."""
        if not isinstance(body, dict):
            raise ValidationFailed("Request body must be an object")
        customer_raw = body.get("customerInfo")
        payment_raw = body.get("paymentInfo")
        if not body.get("items") or not isinstance(customer_raw, dict) or not isinstance(payment_raw, dict):
            raise ValidationFailed("Items, customer info, and payment info are required")

        items = self._parse_items(body["items"])

        delivery_charge = _number(body.get("deliveryCharge") or 0)
        if delivery_charge is None or not 0 <= delivery_charge <= MAX_DELIVERY_CHARGE:
            raise ValidationFailed(f"Invalid delivery charge (must be between 0-{MAX_DELIVERY_CHARGE} BDT)")

        customer = self._customer(customer_raw)
        is_guest = not principal.is_authenticated
        if not is_guest and (principal.email or "").lower() != customer.email:
            raise PermissionDenied("Authenticated users can only create orders with their own email address")
        if not is_valid_email(customer.email):
            raise ValidationFailed("Invalid email format")

        totals = self._totals(items, delivery_charge)
        payment = self._payment(payment_raw)

        branches: list[str] = []
        for item in items:
            for branch in item.available_branches:
                if branch.lower() not in branches:
                    branches.append(branch.lower())

        actor = "guest" if is_guest else principal.actor
        actor_role = "guest" if is_guest else principal.role.value
        note = "Guest order placed successfully" if is_guest else "Order placed successfully"
        shipping = body.get("shippingAddress")

        order = OrderDoc(
            order_id=self._unique_order_id(),
            order_type="guest" if is_guest else "registered",
            items=items,
            customer_info=customer,
            payment_info=payment,
            shipping_address=shipping if isinstance(shipping, dict) else customer.model_dump(by_alias=True),
            order_notes=sanitize_text(body.get("orderNotes"), MAX_NOTES_LENGTH) or "",
            available_branches=branches,
            totals=totals,
            order_history=[
                OrderHistoryEntry(status=OrderStatus.PENDING, note=note, updated_by=actor, updated_by_role=actor_role)
            ],
            created_by=actor,
            created_by_role=actor_role,
            created_by_email=customer.email,
            client_ip=client_ip,
            user_agent=(user_agent or "unknown")[:200],
        )
        order.id = parse_object_id(self.orders.create(order))

        self.audit.record(
            "ORDER_CREATED",
            principal,
            orderId=order.order_id,
            orderType=order.order_type,
            customerEmail=customer.email,
            orderTotal=totals.total,
            itemCount=totals.item_count,
            paymentMethod=payment.method,
            availableBranches=branches,
        )
        logger.info("Order placed", order_id=order.order_id, order_type=order.order_type, total=totals.total)

        return {
            "success": True,
            "message": note,
            "order": order.to_api(),
            "orderType": order.order_type,
        }

    # Staff changes

    def update_status(self, principal: Principal, body: dict[str, Any]) -> dict[str, Any]:
        require_role(principal, STAFF_ROLES, "update orders")
        order_id = (sanitize_text(body.get("orderId")) or "")[:MAX_ORDER_ID_LENGTH]
        status = body.get("status")
        if not order_id or not status:
            raise ValidationFailed("Order ID and status are required")
        try:
            new_status = OrderStatus(status)
        except ValueError:
            allowed = ", ".join(s.value for s in OrderStatus)
            raise ValidationFailed(f"Invalid status. Must be one of: {allowed}") from None

        notes = sanitize_text(body.get("notes"), MAX_NOTES_LENGTH)
        tracking = sanitize_text(body.get("trackingInfo"), 100)

        existing = self.orders.get_by_order_id(order_id)
        if existing is None:
            raise NotFound("Order not found")
        if principal.role == Role.MODERATOR and self._moderator_branch(principal) not in existing.available_branches:
            raise PermissionDenied("Access denied: Cannot update orders from other branches")

        now = utc_now()
        fields: dict[str, Any] = {
            "status": new_status.value,
            "updatedBy": principal.actor,
            "updatedByRole": principal.role.value,
        }
        if new_status == OrderStatus.SHIPPED and tracking:
            fields["trackingInfo"] = tracking
        elif new_status == OrderStatus.DELIVERED:
            fields["deliveryDate"] = now
        elif new_status == OrderStatus.CANCELLED:
            fields["cancelledAt"] = now
        elif new_status == OrderStatus.REFUNDED:
            fields["refundedAt"] = now

        history = OrderHistoryEntry(
            status=new_status,
            note=notes or f"Status changed to {new_status.value}",
            updated_by=principal.actor,
            updated_by_role=principal.role.value,
        )
        updated = self.orders.update_status(order_id, fields, history)
        if updated is None:
            raise NotFound("Order not found for update")

        self.audit.record(
            "ORDER_STATUS_UPDATED",
            principal,
            orderId=order_id,
            customerEmail=existing.customer_info.email,
            oldStatus=existing.status.value,
            newStatus=new_status.value,
            notes=notes or "",
            trackingInfo=tracking or "",
        )
        logger.info("Order status changed", order_id=order_id, old=existing.status.value, new=new_status.value)
        return {
            "success": True,
            "message": "Order updated successfully",
            "orderId": order_id,
            "status": new_status.value,
            "updatedAt": updated.updated_at.isoformat(),
        }

    def cancel(self, principal: Principal, order_id: str | None) -> dict[str, Any]:
        require_role(principal, {Role.USER} | STAFF_ROLES, "cancel orders")
        order_id = (sanitize_text(order_id) or "")[:MAX_ORDER_ID_LENGTH]
        if not order_id:
            raise ValidationFailed("Order ID is required")

        existing = self.orders.get_by_order_id(order_id)
        if existing is None:
            raise NotFound("Order not found")

        if principal.role in FULL_ACCESS_ROLES:
            cancelled_by = "admin"
        elif principal.role == Role.MODERATOR:
            if self._moderator_branch(principal) not in existing.available_branches:
                raise PermissionDenied("Access denied: Cannot cancel orders from other branches")
            cancelled_by = "moderator"
        else:
            if existing.customer_info.email != (principal.email or "").lower():
                raise PermissionDenied("Access denied: Cannot cancel other users' orders")
            if existing.status != OrderStatus.PENDING:
                raise PermissionDenied("Cannot cancel order: Order is not in pending status")
            if utc_now() - as_utc(existing.created_at) >= USER_CANCEL_WINDOW:
                raise PermissionDenied("Cannot cancel order: Time limit exceeded (5 minutes)")
            cancelled_by = "customer"

        now = utc_now()
        history = OrderHistoryEntry(
            status=OrderStatus.CANCELLED,
            note=f"Order cancelled by {cancelled_by}",
            updated_by=principal.actor,
            updated_by_role=principal.role.value,
        )
        self.orders.update_status(
            order_id,
            {
                "status": OrderStatus.CANCELLED.value,
                "cancelledAt": now,
                "updatedBy": principal.actor,
                "updatedByRole": principal.role.value,
            },
            history,
        )

        self.audit.record(
            "ORDER_CANCELLED",
            principal,
            orderId=order_id,
            customerEmail=existing.customer_info.email,
            cancelledBy=cancelled_by,
            orderTotal=existing.totals.total,
        )
        logger.info("Order cancelled", order_id=order_id, cancelled_by=cancelled_by)
        return {
            "success": True,
            "message": "Order cancelled successfully",
            "orderId": order_id,
            "cancelledAt": now.isoformat(),
        }

    # Guest tracking

    def track(self, principal: Principal, order_id: str | None, email: str | None) -> dict[str, Any]:
        """
        Look up one order by its number and the customer email on it.

        Works without a login; the response carries only what a customer
        needs to follow a delivery.
        """
        order_id = (sanitize_text(order_id) or "")[:MAX_ORDER_ID_LENGTH]
        email = (sanitize_text(email, MAX_TRACK_EMAIL_LENGTH) or "").lower()
        if not order_id or not email:
            raise ValidationFailed("Order ID and email are required")
        if not is_valid_email(email):
            raise ValidationFailed("Invalid email format")

        order = self.orders.get_for_customer(order_id, email)
        if order is None:
            self.audit.record("ORDER_TRACK_ATTEMPT_FAILED", principal, orderId=order_id, email=email)
            raise NotFound("Order not found. Please check your Order ID and email address.")

        self.audit.record(
            "ORDER_TRACKED_SUCCESSFULLY",
            principal,
            orderId=order_id,
            email=email,
            orderStatus=order.status.value,
        )
        return {"success": True, "order": tracking_view(order)}
