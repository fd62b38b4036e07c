"""Middlewares del host del panel."""

from __future__ import annotations

import time
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.logging import get_logger, resolve_log_level

logger = get_logger("app.request")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Registra inicio, fin y fallos de cada request con un `x-request-id`."""

    async def dispatch(self, request: Request, call_next):
        request_id = uuid4().hex
        start = time.perf_counter()
        path = request.url.path
        quiet = path.startswith(tuple(settings.request_log_skip_prefixes))
        level = resolve_log_level(settings.request_log_level)

        if not quiet:
            logger.log(
                level,
                "request.started",
                extra={"request_id": request_id, "method": request.method, "path": path},
            )

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request.failed",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": path,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
            raise

        response.headers["x-request-id"] = request_id
        if not quiet:
            logger.log(
                level,
                "request.completed",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
        return response
