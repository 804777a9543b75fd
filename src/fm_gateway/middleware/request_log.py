"""Request logging middleware.

One line per HTTP request: method, path, status, latency, caller and a
request id. The id is placed on request.state for ApiResponse and echoed
back in the X-Request-Id header.

Log format:
    INFO [POST] /api/v1/teams/3/buy -> 200 (12ms) user=u-42 req_a1b2c3d4e5f6
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("fm.request")


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id") or f"req_{uuid.uuid4().hex[:12]}"
        request.state.request_id = request_id

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Request-Id"] = request_id
        logger.info(
            "[%s] %s -> %d (%.0fms) user=%s %s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request.headers.get("x-user-id", "-"),
            request_id,
        )
        return response
