"""
User profiles and role assignment.
"""

from typing import Annotated, Any

import structlog
from pydantic import BaseModel, ConfigDict, StringConstraints
from pydantic.alias_generators import to_camel
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from storefront.auth import Principal, require_role
from storefront.catalog.validation import normalize_branch, parse_payload
from storefront.db.repositories import UserRepository
from storefront.errors import AuthenticationFailed, NotFound, PermissionDenied, ValidationFailed
from storefront.models import STAFF_ROLES, Role, UserDoc, parse_object_id
from storefront.sanitize import is_valid_email

logger = structlog.get_logger(__name__)

USER_ADMIN_ROLES = frozenset({Role.ADMIN, Role.MANAGER})


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    name: Annotated[str, StringConstraints(strip_whitespace=True, max_length=100)] | None = None
    phone: Annotated[str, StringConstraints(strip_whitespace=True, max_length=20)] | None = None
    photo_url: Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)] | None = None
    address: Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)] | None = None


class AccessUpdate(BaseModel):
    """Role and branch assignment, admin only."""

    model_config = ConfigDict(extra="ignore")

    role: Role | None = None
    branch: str | None = None


class UserService:
    """Operations behind ``/api/user``."""

    def __init__(self, db: Database[dict[str, Any]]):
        self.users = UserRepository(db)

    def _get(self, user_id: str) -> UserDoc:
        oid = parse_object_id(user_id)
        if oid is None:
            raise ValidationFailed("Invalid user ID")
        user = self.users.get_by_id(oid)
        if user is None:
            raise NotFound("User not found")
        return user

    @staticmethod
    def _is_self(principal: Principal, user: UserDoc) -> bool:
        return bool(principal.email) and principal.email.lower() == user.email.lower()

    def lookup(self, principal: Principal, email: str) -> dict[str, Any]:
        if not principal.is_authenticated:
            raise AuthenticationFailed("Authentication required")
        email = email.strip().lower()
        if principal.role not in USER_ADMIN_ROLES and (principal.email or "").lower() != email:
            raise PermissionDenied("Access denied: Cannot look up other users")
        user = self.users.get_by_email(email)
        return {"exists": user is not None, "user": user.to_api() if user else None}

    def list_users(self, principal: Principal, page: int = 1, limit: int = 50) -> dict[str, Any]:
        require_role(principal, USER_ADMIN_ROLES, "list users")
        page = max(page, 1)
        limit = max(1, min(limit, 100))
        users = self.users.list_users(skip=(page - 1) * limit, limit=limit)
        return {"users": [u.to_api() for u in users], "total": self.users.count(), "page": page}

    def register(self, principal: Principal, body: dict[str, Any]) -> tuple[dict[str, Any], bool]:
        """
        Create the caller's profile unless it exists.

        Returns:
            Response body and whether a profile was created
        """
        if not principal.is_authenticated:
            raise AuthenticationFailed("Authentication required")
        email = (principal.email or "").strip().lower()
        if not is_valid_email(email):
            raise ValidationFailed("Token carries no valid email address")
        if body.get("email") and str(body["email"]).strip().lower() != email:
            raise PermissionDenied("You can only create your own profile")

        existing = self.users.get_by_email(email)
        if existing is not None:
            return {"message": "User already exists", "user": existing.to_api()}, False

        profile = parse_payload(ProfileUpdate, body)
        user = UserDoc(
            email=email,
            name=profile.name or principal.name or "",
            phone=profile.phone or "",
            photo_url=profile.photo_url,
            address=profile.address or "",
            role=Role.USER,
        )
        try:
            user.id = parse_object_id(self.users.create(user))
        except DuplicateKeyError:
            existing = self.users.get_by_email(email)
            return {"message": "User already exists", "user": existing.to_api() if existing else None}, False

        logger.info("User registered", email=email)
        return {"message": "User created", "user": user.to_api()}, True

    def get(self, principal: Principal, user_id: str) -> dict[str, Any]:
        if not principal.is_authenticated:
            raise AuthenticationFailed("Authentication required")
        user = self._get(user_id)
        if principal.role not in STAFF_ROLES and not self._is_self(principal, user):
            raise PermissionDenied("Access denied: Cannot view other users")
        return user.to_api()

    def update(self, principal: Principal, user_id: str, body: dict[str, Any]) -> dict[str, Any]:
        if not principal.is_authenticated:
            raise AuthenticationFailed("Authentication required")
        user = self._get(user_id)
        is_admin = principal.role == Role.ADMIN
        if not is_admin and not self._is_self(principal, user):
            raise PermissionDenied("Access denied: Cannot edit other users")

        fields = parse_payload(ProfileUpdate, body).model_dump(by_alias=True, exclude_none=True)

        if "role" in body or "branch" in body:
            if not is_admin:
                raise PermissionDenied("Only admins can change roles or branches")
            access = parse_payload(AccessUpdate, body)
            if access.role is not None:
                if access.role == Role.PUBLIC:
                    raise ValidationFailed("Invalid role")
                fields["role"] = access.role.value
            if "branch" in body:
                fields["branch"] = normalize_branch(access.branch) if access.branch else None

        if not fields:
            raise ValidationFailed("No updatable fields provided")

        updated = self.users.update(user.id, fields)
        if updated is None:
            raise NotFound("User not found")
        logger.info("User updated", user_id=user_id, fields=sorted(fields), actor=principal.actor)
        return {"message": "User updated successfully", "user": updated.to_api()}

    def delete(self, principal: Principal, user_id: str) -> dict[str, Any]:
        require_role(principal, {Role.ADMIN}, "delete users")
        user = self._get(user_id)
        self.users.delete(user.id)
        logger.info("User deleted", user_id=user_id, actor=principal.actor)
        return {"message": "User deleted successfully"}
