from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ahaar.core.metrics import request_metrics
from ahaar.core.request_context import begin_request, bind_identity, end_request

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Request id propagation, per-endpoint/per-brand metrics and one access log line."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        token = begin_request(request_id)
        started = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
            return response
        finally:
            status_code = response.status_code if response is not None else 500
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            principal = getattr(request.state, "principal", None)
            if principal is not None:
                # handlers run in worker threads, so the identity is re-bound here
                bind_identity(
                    brand_id=principal.brand_id,
                    user_id=principal.user_id,
                    role=principal.role.value,
                )

            request_metrics.observe(
                endpoint=request.url.path,
                method=request.method,
                status_code=status_code,
                duration_ms=duration_ms,
                brand_id=principal.brand_id if principal is not None else None,
            )
            log = logger.warning if status_code >= 500 else logger.info
            log(
                "request completed",
                extra={
                    "endpoint": request.url.path,
                    "method": request.method,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                    "client": request.client.host if request.client else None,
                },
            )
            if response is not None:
                response.headers[REQUEST_ID_HEADER] = request_id
            end_request(token)
