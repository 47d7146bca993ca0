"""Request logging middleware.

Logs every HTTP request with method, path, status code, latency, and
a short request ID for correlation. The request_id is also injected into
request.state so router handlers can include it in ApiResponse.

Log format:
    INFO [POST] /api/v1/trades/buy → 200 (23ms) req_a1b2c3d4e5f6
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("em.request")


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.request_id = f"req_{uuid.uuid4().hex[:12]}"

        start = time.perf_counter()
        try:
            response: Response = await call_next(request)
        except Exception:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.exception(
                "[%s] %s → unhandled error (%.0fms) %s",
                request.method,
                request.url.path,
                elapsed_ms,
                request.state.request_id,
            )
            raise
        elapsed_ms = (time.perf_counter() - start) * 1000

        logger.log(
            logging.WARNING if response.status_code >= 500 else logging.INFO,
            "[%s] %s → %d (%.0fms) %s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request.state.request_id,
        )
        return response
