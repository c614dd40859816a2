"""
FastAPI dependencies: database, settings, caller identity and limits.

Tests replace ``get_db``, ``get_app_settings``, ``get_media`` and
``get_counter_store`` through ``app.dependency_overrides``.
"""

from typing import Any

import structlog
from fastapi import BackgroundTasks, Depends, Header, Request, UploadFile
from pymongo.database import Database

from storefront.accounts import AuditTrail
from storefront.auth import (
    PUBLIC,
    CounterStore,
    InMemoryCounterStore,
    Principal,
    SlidingWindowLimiter,
    extract_bearer,
    verify_token,
)
from storefront.catalog import UploadedFile
from storefront.config import Settings, get_settings
from storefront.db import get_database
from storefront.db.repositories import AuditLogRepository
from storefront.storage import MediaStore, get_media_store

logger = structlog.get_logger(__name__)

REQUEST_WINDOW_SECONDS = 60
UPLOAD_WINDOW_SECONDS = 3600

_counters = InMemoryCounterStore()


def get_app_settings() -> Settings:
    return get_settings()


def get_db() -> Database[dict[str, Any]]:
    return get_database()


def get_media() -> MediaStore:
    return get_media_store()


def get_counter_store() -> CounterStore:
    return _counters


def client_ip(request: Request) -> str:
    """Source address, honouring the usual proxy headers."""
    headers = request.headers
    forwarded = headers.get("x-forwarded-for")
    candidates = (
        headers.get("cf-connecting-ip"),
        forwarded.split(",")[0] if forwarded else None,
        headers.get("x-real-ip"),
        request.client.host if request.client else None,
    )
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return "unknown"


def get_principal(
    request: Request,
    authorization: str | None = Header(None),
    settings: Settings = Depends(get_app_settings),
    store: CounterStore = Depends(get_counter_store),
) -> Principal:
    """
    Identify the caller and count the request against its role's limit.

    No header means a public caller; a header that fails verification is a 401.
    """
    token = extract_bearer(authorization)
    principal = verify_token(token, settings) if token else PUBLIC

    ip = client_ip(request)
    limiter = SlidingWindowLimiter(store, REQUEST_WINDOW_SECONDS, name="requests")
    limiter.check(f"{ip}:{principal.role.value}", settings.rate_limit_for(principal.role.value))

    structlog.contextvars.bind_contextvars(role=principal.role.value, client_ip=ip)
    return principal


def check_upload_quota(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    store: CounterStore = Depends(get_counter_store),
) -> None:
    """Upload calls per source address per hour."""
    limiter = SlidingWindowLimiter(store, UPLOAD_WINDOW_SECONDS, name="uploads")
    limiter.check(client_ip(request), settings.upload_calls_per_hour)


def check_track_quota(
    request: Request,
    principal: Principal = Depends(get_principal),
    settings: Settings = Depends(get_app_settings),
    store: CounterStore = Depends(get_counter_store),
) -> None:
    """Order tracking lookups per source address per minute."""
    limiter = SlidingWindowLimiter(store, REQUEST_WINDOW_SECONDS, name="track")
    limiter.check(client_ip(request), settings.track_limit_for(principal.role.value))


def get_audit_trail(
    request: Request,
    background: BackgroundTasks,
    db: Database[dict[str, Any]] = Depends(get_db),
) -> AuditTrail:
    return AuditTrail(AuditLogRepository(db), schedule=background.add_task, ip_address=client_ip(request))


def read_upload(upload: UploadFile | None, max_bytes: int) -> UploadedFile | None:
    """
    Buffer a multipart part so services never touch the request stream.

    At most ``max_bytes + 1`` bytes are read; a part that long is over the
    ceiling and is rejected by the size check downstream.
    """
    if upload is None:
        return None
    return UploadedFile(
        filename=upload.filename or "",
        content_type=upload.content_type or "",
        data=upload.file.read(max_bytes + 1),
    )
