"""
/api/sales: counter sales at a branch.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse
from pymongo.database import Database

from storefront.accounts import AuditTrail
from storefront.api.deps import get_app_settings, get_audit_trail, get_db, get_principal
from storefront.auth import Principal
from storefront.config import Settings
from storefront.inventory import SaleService

router = APIRouter(prefix="/api/sales", tags=["sales"])


def get_service(
    db: Database[dict[str, Any]] = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    audit: AuditTrail = Depends(get_audit_trail),
) -> SaleService:
    return SaleService(db, settings, audit)


@router.get("")
def list_sales(
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    payment_type: str | None = Query(None, alias="paymentType"),
    status: str | None = None,
    branch: str | None = None,
    limit: int = 50,
    page: int = 1,
    principal: Principal = Depends(get_principal),
    service: SaleService = Depends(get_service),
) -> dict[str, Any]:
    return service.list_sales(
        principal,
        start_date=start_date,
        end_date=end_date,
        payment_type=payment_type,
        status=status,
        branch=branch,
        limit=limit,
        page=page,
    )


@router.post("")
def record_sale(
    body: dict[str, Any] = Body(...),
    principal: Principal = Depends(get_principal),
    service: SaleService = Depends(get_service),
):
    return JSONResponse(service.record_sale(principal, body), status_code=201)
