"""
Bearer token verification.

Tokens are issued by the external auth service; this module only verifies
them and turns their claims into a ``Principal``.
"""

from jose import JWTError, jwt
from pydantic import BaseModel

from storefront.config import Settings
from storefront.errors import AuthenticationFailed, PermissionDenied
from storefront.models import CATALOG_WRITE_ROLES, STAFF_ROLES, Role


class Principal(BaseModel):
    """The caller of a request."""

    role: Role = Role.PUBLIC
    branch: str | None = None
    user_id: str | None = None
    email: str | None = None
    name: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.role != Role.PUBLIC

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def can_write_catalog(self) -> bool:
        return self.role in CATALOG_WRITE_ROLES

    @property
    def actor(self) -> str:
        """Identifier stamped into audit fields."""
        return self.user_id or self.email or self.role.value


PUBLIC = Principal()


def extract_bearer(authorization: str | None) -> str | None:
    """Token from an ``Authorization`` header, or None when absent."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationFailed("Malformed authorization header")
    return token.strip()


def verify_token(token: str, settings: Settings) -> Principal:
    """Decode and verify a token, returning the caller it describes."""
    secret = settings.jwt_secret_str
    if not secret:
        raise AuthenticationFailed("Token verification is not configured")

    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError as e:
        raise AuthenticationFailed("Invalid or expired token") from e

    try:
        role = Role(claims.get("role") or Role.USER.value)
    except ValueError as e:
        raise AuthenticationFailed("Token carries an unknown role") from e
    if role == Role.PUBLIC:
        role = Role.USER

    branch = claims.get("branch")
    return Principal(
        role=role,
        branch=branch.strip().lower() if isinstance(branch, str) and branch.strip() else None,
        user_id=claims.get("userId") or claims.get("sub"),
        email=claims.get("email"),
        name=claims.get("name"),
    )


def require_role(principal: Principal, roles: frozenset[Role] | set[Role], action: str) -> Principal:
    """Reject callers outside ``roles`` (401 when anonymous, 403 otherwise)."""
    if not principal.is_authenticated:
        raise AuthenticationFailed("Authentication required")
    if principal.role not in roles:
        raise PermissionDenied(
            f"Access denied. Your role cannot {action}",
            currentRole=principal.role.value,
        )
    return principal
