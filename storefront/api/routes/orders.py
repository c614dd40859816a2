"""
/api/orders: placing, listing, status changes, cancellation and tracking.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request, Response
from fastapi.responses import JSONResponse
from pymongo.database import Database

from storefront.accounts import AuditTrail
from storefront.api.deps import check_track_quota, client_ip, get_audit_trail, get_db, get_principal
from storefront.auth import Principal
from storefront.orders import OrderService

router = APIRouter(prefix="/api/orders", tags=["orders"])


def get_service(
    db: Database[dict[str, Any]] = Depends(get_db),
    audit: AuditTrail = Depends(get_audit_trail),
) -> OrderService:
    return OrderService(db, audit)


@router.get("")
def list_orders(
    order_id: str | None = Query(None, alias="orderId"),
    status: str | None = None,
    customer_email: str | None = Query(None, alias="customerEmail"),
    branch: str | None = None,
    limit: int = 20,
    page: int = 1,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    principal: Principal = Depends(get_principal),
    service: OrderService = Depends(get_service),
) -> dict[str, Any]:
    return service.list_orders(
        principal,
        order_id=order_id,
        status=status,
        customer_email=customer_email,
        branch=branch,
        limit=limit,
        page=page,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.post("")
def place_order(
    request: Request,
    body: dict[str, Any] = Body(...),
    principal: Principal = Depends(get_principal),
    service: OrderService = Depends(get_service),
):
    result = service.place_order(
        principal,
        body,
        client_ip=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return JSONResponse(result, status_code=201)


@router.put("")
def update_order(
    body: dict[str, Any] = Body(...),
    principal: Principal = Depends(get_principal),
    service: OrderService = Depends(get_service),
) -> dict[str, Any]:
    return service.update_status(principal, body)


@router.delete("")
def cancel_order(
    order_id: str | None = Query(None, alias="orderId"),
    principal: Principal = Depends(get_principal),
    service: OrderService = Depends(get_service),
) -> dict[str, Any]:
    return service.cancel(principal, order_id)


@router.get("/track", dependencies=[Depends(check_track_quota)])
def track_order(
    response: Response,
    order_id: str | None = Query(None, alias="orderId"),
    email: str | None = None,
    principal: Principal = Depends(get_principal),
    service: OrderService = Depends(get_service),
) -> dict[str, Any]:
    result = service.track(principal, order_id, email)
    response.headers["Cache-Control"] = "private, max-age=300"
    return result
