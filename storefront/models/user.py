"""
User profile and audit log documents.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from storefront.models.base import MongoBaseModel, utc_now


class Role(str, Enum):
    """Caller roles, from least to most privileged."""

    PUBLIC = "public"
    USER = "user"
    MODERATOR = "moderator"
    MANAGER = "manager"
    ADMIN = "admin"


STAFF_ROLES = frozenset({Role.MODERATOR, Role.MANAGER, Role.ADMIN})
CATALOG_WRITE_ROLES = frozenset({Role.MANAGER, Role.ADMIN})


class UserDoc(MongoBaseModel):
    """
    MongoDB document for a registered user.

    Collection: user
    """

    email: str
    name: str = ""
    phone: str = ""
    photo_url: str | None = None
    address: str = ""
    role: Role = Role.USER
    branch: str | None = Field(None, description="Assigned branch for moderators")

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class AuditLogDoc(MongoBaseModel):
    """
    Append-only record of sensitive operations.

    Collection: audit_logs
    """

    action: str
    user_id: str | None = None
    user_email: str | None = None
    user_role: str | None = None
    ip_address: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)
