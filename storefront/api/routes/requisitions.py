"""
/api/requisitions: stock requests between branches.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse
from pymongo.database import Database

from storefront.accounts import AuditTrail
from storefront.api.deps import get_app_settings, get_audit_trail, get_db, get_principal
from storefront.auth import Principal
from storefront.config import Settings
from storefront.inventory import RequisitionService

router = APIRouter(prefix="/api/requisitions", tags=["requisitions"])


def get_service(
    db: Database[dict[str, Any]] = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    audit: AuditTrail = Depends(get_audit_trail),
) -> RequisitionService:
    return RequisitionService(db, settings, audit)


@router.get("")
def list_requisitions(
    status: str | None = None,
    branch: str | None = None,
    limit: int = 50,
    principal: Principal = Depends(get_principal),
    service: RequisitionService = Depends(get_service),
) -> dict[str, Any]:
    return service.list_requisitions(principal, status=status, branch=branch, limit=limit)


@router.post("")
def create_requisition(
    body: dict[str, Any] = Body(...),
    principal: Principal = Depends(get_principal),
    service: RequisitionService = Depends(get_service),
):
    return JSONResponse(service.create(principal, body), status_code=201)


@router.patch("")
def update_requisition(
    body: dict[str, Any] = Body(...),
    principal: Principal = Depends(get_principal),
    service: RequisitionService = Depends(get_service),
) -> dict[str, Any]:
    return service.act(principal, body)


@router.delete("")
def delete_requisition(
    requisition_id: str | None = Query(None, alias="id"),
    principal: Principal = Depends(get_principal),
    service: RequisitionService = Depends(get_service),
) -> dict[str, Any]:
    return service.delete(principal, requisition_id)
