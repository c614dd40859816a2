"""
/api/user: customer and staff profiles.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from pymongo.database import Database

from storefront.accounts import UserService
from storefront.api.deps import get_db, get_principal
from storefront.auth import Principal

router = APIRouter(prefix="/api/user", tags=["users"])


def get_service(db: Database[dict[str, Any]] = Depends(get_db)) -> UserService:
    return UserService(db)


@router.get("")
def find_users(
    email: str | None = None,
    page: int = 1,
    limit: int = 50,
    principal: Principal = Depends(get_principal),
    service: UserService = Depends(get_service),
) -> dict[str, Any]:
    if email:
        return service.lookup(principal, email)
    return service.list_users(principal, page=page, limit=limit)


@router.post("")
def register_user(
    body: dict[str, Any] | None = Body(None),
    principal: Principal = Depends(get_principal),
    service: UserService = Depends(get_service),
):
    result, created = service.register(principal, body or {})
    return JSONResponse(result, status_code=201 if created else 200)


@router.get("/{user_id}")
def read_user(
    user_id: str,
    principal: Principal = Depends(get_principal),
    service: UserService = Depends(get_service),
) -> dict[str, Any]:
    return service.get(principal, user_id)


@router.put("/{user_id}")
def update_user(
    user_id: str,
    body: dict[str, Any] = Body(...),
    principal: Principal = Depends(get_principal),
    service: UserService = Depends(get_service),
) -> dict[str, Any]:
    return service.update(principal, user_id, body)


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    principal: Principal = Depends(get_principal),
    service: UserService = Depends(get_service),
) -> dict[str, Any]:
    return service.delete(principal, user_id)
