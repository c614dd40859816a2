"""
FastAPI application for the VWV storefront and back office.

Every error leaves as ``{"error": ..., "timestamp": ...}``; 5xx messages are
replaced with a generic one outside dev.
"""

import time
from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront import __version__
from storefront.api.routes import (
    branches,
    featured_categories,
    health,
    offer_popup,
    orders,
    products,
    recommendation,
    requisitions,
    sales,
    slider,
    users,
)
from storefront.config import Settings, configure_logging, get_settings
from storefront.errors import ApiError

logger = structlog.get_logger(__name__)

GENERIC_SERVER_ERROR = "Internal server error"


def error_body(message: str, context: str | None = None, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"error": message}
    if context:
        body["context"] = context
    body["timestamp"] = datetime.now(timezone.utc).isoformat()
    body.update(extra)
    return body


def _describe_validation(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="VWV Storefront API",
        description="Catalog, orders, branch inventory and promotional content for the VWV shops",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        structlog.contextvars.clear_contextvars()
        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "Request handled",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 1),
        )
        return response

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
        headers = None
        if "retryAfter" in exc.extra:
            headers = {"Retry-After": str(exc.extra["retryAfter"])}

        if exc.status_code >= 500:
            logger.error("Request failed", path=request.url.path, error=exc.message)
            if not settings.is_development:
                return JSONResponse(error_body(GENERIC_SERVER_ERROR), status_code=exc.status_code)
        else:
            logger.info("Request rejected", path=request.url.path, status=exc.status_code, error=exc.message)

        return JSONResponse(
            error_body(exc.message, **exc.extra),
            status_code=exc.status_code,
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(error_body(_describe_validation(exc)), status_code=400)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", path=request.url.path)
        if settings.is_development:
            return JSONResponse(
                error_body(str(exc) or GENERIC_SERVER_ERROR, context=type(exc).__name__),
                status_code=500,
            )
        return JSONResponse(error_body(GENERIC_SERVER_ERROR), status_code=500)

    routers = (
        products,
        branches,
        orders,
        sales,
        requisitions,
        offer_popup,
        featured_categories,
        slider,
        recommendation,
        users,
        health,
    )
    for module in routers:
        app.include_router(module.router)

    return app


def main():
    """Run the API server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "storefront.api.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "dev",
    )


if __name__ == "__main__":
    main()
