"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from nearby.domain.discovery.exceptions import (
    AuthError,
    ChannelPermissionError,
    DiscoveryError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from nearby.infra.rate_limit import RateLimitExceeded

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[DiscoveryError], int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthError, status.HTTP_401_UNAUTHORIZED),
    (ChannelPermissionError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (UpstreamError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def get_request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-Id")


def status_for(exc: DiscoveryError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        rid = get_request_id(request)
        payload = {"detail": exc.detail, "request_id": rid}
        return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        rid = get_request_id(request)
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ]
        payload = {"detail": "validation_error", "errors": errors, "request_id": rid}
        return JSONResponse(status_code=422, content=payload)

    @app.exception_handler(DiscoveryError)
    async def discovery_exc_handler(request: Request, exc: DiscoveryError):  # type: ignore[override]
        rid = get_request_id(request)
        code = status_for(exc)
        payload: dict[str, object] = {"detail": exc.reason, "request_id": rid}
        if isinstance(exc, ValidationError) and exc.errors:
            payload["errors"] = [
                {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
                for err in exc.errors
            ]
        if isinstance(exc, UpstreamError):
            logger.warning("upstream error surfaced", extra={"source": exc.source, "reason": exc.reason})
        return JSONResponse(status_code=code, content=payload)

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_exc_handler(request: Request, exc: RateLimitExceeded):  # type: ignore[override]
        rid = get_request_id(request)
        payload = {"detail": exc.reason, "request_id": rid}
        return JSONResponse(status_code=status.HTTP_429_TOO_MANY_REQUESTS, content=payload, headers={"Retry-After": "60"})
