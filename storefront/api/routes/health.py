"""
/api/test-db: database connectivity check.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends
from pymongo.database import Database
from pymongo.errors import PyMongoError

from storefront.api.deps import get_db
from storefront.errors import UpstreamError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/test-db")
def test_db(db: Database[dict[str, Any]] = Depends(get_db)) -> dict[str, Any]:
    try:
        db.command("ping")
    except PyMongoError as e:
        logger.error("Database ping failed", error=str(e))
        raise UpstreamError("Database connection failed") from e
    return {"message": "Connected!"}
