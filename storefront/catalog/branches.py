"""
Branch registry.

Removing a branch leaves existing ``<branch>_stock`` keys on products as
they are.
"""

from typing import Any

import structlog
from pymongo.database import Database

from storefront.auth import Principal, require_role
from storefront.catalog.validation import normalize_branch
from storefront.config import Settings
from storefront.db.repositories import SettingsRepository
from storefront.errors import Conflict, NotFound, ValidationFailed
from storefront.models import Role

logger = structlog.get_logger(__name__)

ADMIN_ONLY = frozenset({Role.ADMIN})


class BranchRegistry:
    """Operations behind ``/api/branches``."""

    def __init__(self, db: Database[dict[str, Any]], settings: Settings):
        self.repo = SettingsRepository(db)
        self.defaults = list(settings.default_branches)

    def list_branches(self) -> dict[str, Any]:
        return {"branches": self.repo.get_branches(self.defaults)}

    def add(self, principal: Principal, body: dict[str, Any]) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage branches")
        if body.get("action", "add") != "add":
            raise ValidationFailed(f"Unknown action: {body.get('action')}")
        name = normalize_branch(body.get("branchName"))

        if name in self.repo.get_branches(self.defaults):
            raise Conflict("Branch already exists")
        branches = self.repo.add_branch(name)

        logger.info("Branch added", branch=name, actor=principal.actor)
        return {"message": "Branch added successfully", "branch": name, "branches": branches}

    def remove(self, principal: Principal, branch_name: Any) -> dict[str, Any]:
        require_role(principal, ADMIN_ONLY, "manage branches")
        name = normalize_branch(branch_name)

        current = self.repo.get_branches(self.defaults)
        if name not in current:
            raise NotFound("Branch not found")
        if len(current) <= 1:
            raise ValidationFailed("Cannot delete the last branch")
        branches = self.repo.remove_branch(name)

        logger.info("Branch removed", branch=name, actor=principal.actor)
        return {"message": "Branch deleted successfully", "branches": branches}

    def require_known(self, branch_name: Any) -> str:
        """Normalized name of a registered branch."""
        name = normalize_branch(branch_name)
        if name not in self.repo.get_branches(self.defaults):
            raise ValidationFailed(f"Unknown branch: {name}")
        return name
