"""
FastAPI middleware for observability (request_id + latency) and security headers.
Why: minimal tracing without extra deps; every response carries the same
hardening headers.
"""

import time
import uuid
from typing import Callable, Mapping, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from draftwise.config.settings import settings
from draftwise.core.logging import get_logger
from draftwise.core.metrics import metrics
from draftwise.core.security import HSTS_HEADER, SECURITY_HEADERS

_LOG = get_logger(__name__)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = int((time.perf_counter() - start) * 1000)
            metrics.increment_requests()
            metrics.record_latency(duration_ms)
            status = response.status_code if response is not None else 500
            if status >= 500:
                metrics.increment_errors()
            _LOG.info(
                f"path={request.url.path} method={request.method} "
                f"status={status} "
                f"duration_ms={duration_ms} request_id={request_id}"
            )
            if response is not None:
                response.headers["X-Request-ID"] = request_id


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        headers: Optional[Mapping[str, str]] = None,
        enable_hsts: Optional[bool] = None,
    ) -> None:
        super().__init__(app)
        self.headers = dict(SECURITY_HEADERS if headers is None else headers)
        hsts = settings.security.enable_hsts if enable_hsts is None else enable_hsts
        if hsts:
            self.headers["Strict-Transport-Security"] = HSTS_HEADER

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response
