"""Per-request access log and request id propagation.

A caller-supplied X-Request-ID is kept (upstream services pass theirs through),
otherwise one is minted. It lands on request.state for the response envelope
and is echoed back as a header.

    INFO  mk.request [POST] /api/v1/withdrawals → 201 (23ms) req_a1b2c3d4e5f6

5xx responses are logged at WARNING, /health at DEBUG.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.mk_common.response import new_request_id

logger = logging.getLogger("mk.request")

_QUIET_PATHS = frozenset({"/health"})


def _level_for(path: str, status_code: int) -> int:
    if status_code >= 500:
        return logging.WARNING
    if path in _QUIET_PATHS:
        return logging.DEBUG
    return logging.INFO


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or new_request_id()
        request.state.request_id = request_id

        started = time.perf_counter()
        response = await call_next(request)
        latency_ms = (time.perf_counter() - started) * 1000

        response.headers["X-Request-ID"] = request_id
        logger.log(
            _level_for(request.url.path, response.status_code),
            "[%s] %s → %d (%.0fms) %s",
            request.method, request.url.path, response.status_code, latency_ms,
            request_id,
        )
        return response
