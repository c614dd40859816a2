"""
Audit trail for sensitive operations.
"""

from typing import Any, Callable

import structlog
from pymongo.errors import PyMongoError

from storefront.auth import Principal
from storefront.db.repositories import AuditLogRepository
from storefront.models import AuditLogDoc

logger = structlog.get_logger(__name__)

Scheduler = Callable[..., None]


def _run_now(func: Callable[..., Any], *args: Any) -> None:
    func(*args)


class AuditTrail:
    """
    Writes audit entries off the request path.

    ``schedule`` receives the write callable; routes pass FastAPI's
    ``BackgroundTasks.add_task`` so the entry is stored after the response.
    """

    def __init__(self, repo: AuditLogRepository, schedule: Scheduler = _run_now, ip_address: str | None = None):
        self.repo = repo
        self.schedule = schedule
        self.ip_address = ip_address

    def record(self, action: str, principal: Principal, **details: Any) -> None:
        entry = AuditLogDoc(
            action=action,
            user_id=principal.user_id,
            user_email=principal.email,
            user_role=principal.role.value if principal.is_authenticated else "guest",
            ip_address=self.ip_address,
            details=details,
        )
        self.schedule(self._write, entry)

    def _write(self, entry: AuditLogDoc) -> None:
        # Losing an audit entry must never fail the request that produced it
        try:
            self.repo.log(entry)
        except PyMongoError as e:
            logger.error("Audit log write failed", action=entry.action, error=str(e))
