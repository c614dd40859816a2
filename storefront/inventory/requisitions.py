"""
Stock requisitions: a branch asks another branch for stock, an admin
approves or rejects, ships and finally receives it.

Receiving moves each approved quantity from the source branch's stock to
the destination's in one conditional write per product.
"""

from datetime import datetime, timezone
from typing import Any

import structlog
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from storefront.accounts.audit import AuditTrail
from storefront.auth import Principal, require_role
from storefront.catalog.branches import BranchRegistry
from storefront.config import Settings
from storefront.db.repositories import ProductRepository, RequisitionRepository
from storefront.errors import Conflict, NotFound, PermissionDenied, UpstreamError, ValidationFailed
from storefront.inventory.sales import whole_number
from storefront.models import (
    STAFF_ROLES,
    RequestedBy,
    RequisitionDoc,
    RequisitionItem,
    RequisitionPriority,
    RequisitionStatus,
    Role,
    StockTransfer,
    TransferResult,
    parse_object_id,
    stock_key,
    utc_now,
)
from storefront.sanitize import sanitize_text

logger = structlog.get_logger(__name__)

ADMIN_ONLY = frozenset({Role.ADMIN})
MAX_ITEMS = 50
MAX_REQUESTED_QTY = 10_000
MAX_LIST_SIZE = 100
NUMBER_ATTEMPTS = 5

# action -> (required current status, new status, past tense)
TRANSITIONS = {
    "approve": (RequisitionStatus.PENDING, RequisitionStatus.APPROVED, "approved"),
    "reject": (RequisitionStatus.PENDING, RequisitionStatus.REJECTED, "rejected"),
    "mark-in-transit": (RequisitionStatus.APPROVED, RequisitionStatus.IN_TRANSIT, "marked as in transit"),
    "mark-received": (RequisitionStatus.IN_TRANSIT, RequisitionStatus.RECEIVED, "marked as received"),
}


def requisition_prefix(now: datetime) -> str:
    return f"REQ-{now:%Y%m}-"


def next_requisition_number(last: str | None, now: datetime) -> str:
    """``REQ-YYYYMM-NNNN``, numbered from 0001 each month."""
    prefix = requisition_prefix(now)
    seq = 1
    if last and last.startswith(prefix):
        tail = last[len(prefix):]
        seq = int(tail) + 1 if tail.isdigit() else 1
    return f"{prefix}{seq:04d}"


class RequisitionService:
    """Operations behind ``/api/requisitions``."""

    def __init__(self, db: Database[dict[str, Any]], settings: Settings, audit: AuditTrail):
        self.repo = RequisitionRepository(db)
        self.products = ProductRepository(db)
        self.branches = BranchRegistry(db, settings)
        self.audit = audit

    def _own_branch(self, principal: Principal) -> str:
        if not principal.branch:
            raise PermissionDenied("No branch is assigned to your account")
        return principal.branch

    def _get(self, requisition_id: Any) -> RequisitionDoc:
        oid = parse_object_id(requisition_id)
        if oid is None:
            raise ValidationFailed("Invalid requisition ID")
        requisition = self.repo.get(oid)
        if requisition is None:
            raise NotFound("Requisition not found")
        return requisition

    # Reads

    def list_requisitions(
        self,
        principal: Principal,
        status: str | None = None,
        branch: str | None = None,
        limit: int = 50,
    ) -> dict[str, Any]:
        require_role(principal, STAFF_ROLES, "view requisitions")
        query: dict[str, Any] = {}
        if principal.role == Role.MODERATOR:
            query["destinationBranch"] = self._own_branch(principal)
        elif branch:
            query["destinationBranch"] = branch.strip().lower()
        if status:
            if status not in {s.value for s in RequisitionStatus}:
                raise ValidationFailed(f"Invalid status: {status}")
            query["status"] = status

        requisitions = self.repo.find(query, limit=max(1, min(limit, MAX_LIST_SIZE)))
        return {
            "success": True,
            "requisitions": [r.to_api() for r in requisitions],
            "count": len(requisitions),
        }

    # Creation

    def _items(self, raw_items: Any) -> list[RequisitionItem]:
        if not isinstance(raw_items, list) or not raw_items:
            raise ValidationFailed("At least one item is required")
        if len(raw_items) > MAX_ITEMS:
            raise ValidationFailed(f"A requisition can hold at most {MAX_ITEMS} items")

        items = []
        for n, raw in enumerate(raw_items, start=1):
            if not isinstance(raw, dict):
                raise ValidationFailed(f"Item {n}: Must be an object")
            product_id = parse_object_id(raw.get("productId"))
            if product_id is None:
                raise ValidationFailed(f"Item {n}: Invalid product ID")
            qty = whole_number(raw.get("requestedQty"))
            if qty is None or not 1 <= qty <= MAX_REQUESTED_QTY:
                raise ValidationFailed(f"Item {n}: Requested quantity must be between 1 and {MAX_REQUESTED_QTY}")
            product = self.products.get_by_id(product_id)
            if product is None:
                raise NotFound(f"Product not found: {product_id}")
            items.append(RequisitionItem(
                product_id=str(product_id),
                product_name=product.name,
                requested_qty=qty,
                notes=sanitize_text(raw.get("notes"), 200) or "",
            ))
        return items

    def create(self, principal: Principal, body: dict[str, Any]) -> dict[str, Any]:
        require_role(principal, STAFF_ROLES, "create requisitions")
        if not isinstance(body, dict):
            raise ValidationFailed("Request body must be an object")

        if principal.role == Role.MODERATOR:
            destination = self._own_branch(principal)
            requested = body.get("destinationBranch")
            if requested and str(requested).strip().lower() != destination:
                raise PermissionDenied("Access denied: You can only request stock for your own branch")
        else:
            if not body.get("destinationBranch"):
                raise ValidationFailed("Destination branch is required")
            destination = self.branches.require_known(body["destinationBranch"])

        if not body.get("sourceBranch"):
            raise ValidationFailed("Source branch is required")
        source = self.branches.require_known(body["sourceBranch"])
        if source == destination:
            raise ValidationFailed("Source and destination branches must differ")

        try:
            priority = RequisitionPriority(body.get("priority") or RequisitionPriority.NORMAL.value)
        except ValueError:
            raise ValidationFailed("Priority must be one of: low, normal, high, urgent") from None

        items = self._items(body.get("items"))
        requisition = RequisitionDoc(
            requisition_number="",
            requested_by=RequestedBy(
                user_id=principal.user_id,
                name=principal.name,
                email=principal.email,
                branch=principal.branch,
            ),
            source_branch=source,
            destination_branch=destination,
            items=items,
            priority=priority,
            notes=sanitize_text(body.get("notes"), 500) or "",
        )

        # Numbers are sequential per month; retry on a concurrent insert
        now = utc_now()
        for _ in range(NUMBER_ATTEMPTS):
            requisition.requisition_number = next_requisition_number(
                self.repo.last_number(requisition_prefix(now)), now
            )
            try:
                requisition.id = parse_object_id(self.repo.create(requisition))
                break
            except DuplicateKeyError:
                continue
        else:
            raise UpstreamError("Failed to allocate a requisition number")

        self.audit.record(
            "REQUISITION_CREATED",
            principal,
            requisitionNumber=requisition.requisition_number,
            sourceBranch=source,
            destinationBranch=destination,
            itemCount=len(items),
            priority=priority.value,
        )
        logger.info(
            "Requisition created",
            number=requisition.requisition_number,
            source=source,
            destination=destination,
        )
        return {
            "success": True,
            "message": "Requisition created successfully",
            "requisition": requisition.to_api(),
        }

    # Admin actions

    def _approved_items(self, requisition: RequisitionDoc, raw: Any) -> list[RequisitionItem]:
        items = [item.model_copy() for item in requisition.items]
        if raw is None:
            for item in items:
                item.approved_qty = item.requested_qty
            return items
        if not isinstance(raw, list) or len(raw) != len(items):
            raise ValidationFailed("approvedQuantities must list one quantity per item")
        for n, (item, value) in enumerate(zip(items, raw), start=1):
            qty = whole_number(value)
            if qty is None or not 0 <= qty <= item.requested_qty:
                raise ValidationFailed(f"Item {n}: Approved quantity must be between 0 and {item.requested_qty}")
            item.approved_qty = qty
        if not any(item.approved_qty for item in items):
            raise ValidationFailed("At least one item must be approved")
        return items

    def _delivery_date(self, value: Any) -> datetime | None:
        if not value:
            return None
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError:
            raise ValidationFailed("Invalid delivery date") from None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

    def _transfer(self, principal: Principal, requisition: RequisitionDoc) -> StockTransfer:
        source_key = stock_key(requisition.source_branch)
        dest_key = stock_key(requisition.destination_branch)
        transfer = StockTransfer()
        for item in requisition.items:
            if not item.approved_qty:
                continue
            qty = item.approved_qty
            result = TransferResult(product_id=item.product_id, product_name=item.product_name, quantity=qty)
            product_id = parse_object_id(item.product_id)
            moved = product_id is not None and self.products.move_stock(
                product_id, {source_key: -qty, dest_key: qty}, principal.actor
            )
            if not moved:
                result.error = f"Insufficient stock at {requisition.source_branch} or product missing"
                transfer.failed.append(result)
                continue
            transfer.successful.append(result)
            self.audit.record(
                "STOCK_TRANSFER",
                principal,
                requisitionNumber=requisition.requisition_number,
                productId=item.product_id,
                productName=item.product_name,
                quantity=qty,
                fromBranch=requisition.source_branch,
                toBranch=requisition.destination_branch,
            )
        return transfer

    def act(self, principal: Principal, body: dict[str, Any]) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage requisitions")
        if not isinstance(body, dict):
            raise ValidationFailed("Request body must be an object")
        action = body.get("action")
        if action not in TRANSITIONS:
            raise ValidationFailed(f"Unknown action: {action}")
        requisition = self._get(body.get("requisitionId"))
        expected, target, done = TRANSITIONS[action]
        if requisition.status != expected:
            raise ValidationFailed(f"Only {expected.value} requisitions can be {done}")

        now = utc_now()
        fields: dict[str, Any] = {"status": target.value}
        if action == "approve":
            items = self._approved_items(requisition, body.get("approvedQuantities"))
            fields.update({
                "items": [item.model_dump(by_alias=True) for item in items],
                "approvedBy": principal.actor,
                "approvedAt": now,
                "deliveryDate": self._delivery_date(body.get("deliveryDate")),
            })
        elif action == "reject":
            fields.update({
                "rejectedBy": principal.actor,
                "rejectedAt": now,
                "rejectionReason": sanitize_text(body.get("rejectionReason"), 500) or "No reason provided",
            })
        elif action == "mark-in-transit":
            fields.update({"shippedBy": principal.actor, "shippedAt": now})
        else:
            if not any(item.approved_qty for item in requisition.items):
                raise ValidationFailed("No approved items to transfer")
            fields.update({"receivedBy": principal.actor, "receivedAt": now})

        # The status guard makes a second concurrent action a no-op
        updated = self.repo.transition(requisition.id, expected, fields)
        if updated is None:
            raise Conflict(f"Requisition is no longer {expected.value}")

        extra: dict[str, Any] = {}
        if action == "mark-received":
            transfer = self._transfer(principal, updated)
            if not transfer.successful:
                self.repo.transition(
                    updated.id,
                    RequisitionStatus.RECEIVED,
                    {"status": expected.value, "receivedBy": None, "receivedAt": None},
                )
                raise Conflict(
                    "Stock transfer failed for every item",
                    failed=[r.model_dump(by_alias=True) for r in transfer.failed],
                )
            updated = self.repo.transition(
                updated.id,
                RequisitionStatus.RECEIVED,
                {"stockTransfer": transfer.model_dump(by_alias=True)},
            ) or updated
            extra["stockTransfer"] = transfer.model_dump(by_alias=True, mode="json")

        self.audit.record(
            f"REQUISITION_{action.upper().replace('-', '_')}",
            principal,
            requisitionNumber=requisition.requisition_number,
            oldStatus=expected.value,
            newStatus=target.value,
        )
        logger.info("Requisition updated", number=requisition.requisition_number, action=action)
        return {
            "success": True,
            "message": f"Requisition {done} successfully",
            "requisition": updated.to_api(),
            **extra,
        }

    def delete(self, principal: Principal, requisition_id: Any) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "delete requisitions")
        requisition = self._get(requisition_id)
        if requisition.status != RequisitionStatus.PENDING:
            raise ValidationFailed("Only pending requisitions can be deleted")
        if not self.repo.delete_pending(requisition.id):
            raise Conflict("Requisition is no longer pending")

        self.audit.record(
            "REQUISITION_DELETED",
            principal,
            requisitionNumber=requisition.requisition_number,
            sourceBranch=requisition.source_branch,
            destinationBranch=requisition.destination_branch,
        )
        logger.info("Requisition deleted", number=requisition.requisition_number)
        return {"success": True, "message": "Requisition deleted successfully"}
