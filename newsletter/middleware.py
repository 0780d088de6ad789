"""Cross-cutting request logging."""

from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("newsletter.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Emit one log record per request once it has been dispatched."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self._log(request, 500, started)
            raise
        self._log(request, response.status_code, started)
        return response

    @staticmethod
    def _log(request: Request, status_code: int, started: float) -> None:
        duration_ms = (time.perf_counter() - started) * 1000
        client = request.client.host if request.client else "-"
        logger.info(
            '%s "%s %s" %s %.1fms',
            client,
            request.method,
            request.url.path,
            status_code,
            duration_ms,
            extra={
                "client": client,
                "method": request.method,
                "path": request.url.path,
                "status": status_code,
                "duration_ms": round(duration_ms, 3),
            },
        )


__all__ = ["RequestLoggingMiddleware"]
