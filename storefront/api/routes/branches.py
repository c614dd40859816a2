"""
/api/branches: the branch registry.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse
from pymongo.database import Database

from storefront.api.deps import get_app_settings, get_db, get_principal
from storefront.auth import Principal
from storefront.catalog import BranchRegistry
from storefront.config import Settings

router = APIRouter(prefix="/api/branches", tags=["branches"])


def get_registry(
    db: Database[dict[str, Any]] = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> BranchRegistry:
    return BranchRegistry(db, settings)


@router.get("")
def list_branches(
    principal: Principal = Depends(get_principal),
    registry: BranchRegistry = Depends(get_registry),
) -> dict[str, Any]:
    return registry.list_branches()


@router.post("")
def add_branch(
    body: dict[str, Any] = Body(...),
    principal: Principal = Depends(get_principal),
    registry: BranchRegistry = Depends(get_registry),
):
    return JSONResponse(registry.add(principal, body), status_code=201)


@router.delete("")
def remove_branch(
    body: dict[str, Any] | None = Body(None),
    branch_name: str | None = Query(None, alias="branchName"),
    principal: Principal = Depends(get_principal),
    registry: BranchRegistry = Depends(get_registry),
) -> dict[str, Any]:
    # The admin page sends a JSON body; the query form is kept for scripts
    name: Any = (body or {}).get("branchName", branch_name)
    return registry.remove(principal, name)
