"""API envelope shared by every route.

    {"code": 0, "message": "success", "error_code": null, "data": {...},
     "timestamp": "...", "request_id": "req_..."}

On error `code` is the numeric AppError code, `error_code` its stable string
and `data` carries the error details (required/available amounts etc.).
The request id is taken from request.state when RequestLogMiddleware ran, so
the body and the X-Request-ID header always agree.
"""

import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field
from starlette.requests import Request


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    error_code: str | None = None
    data: Any = None
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    request_id: str = Field(default_factory=new_request_id)


def _request_id(request: Request | None) -> str:
    if request is None:
        return new_request_id()
    return getattr(request.state, "request_id", None) or new_request_id()


def success_response(data: Any = None, request: Request | None = None) -> ApiResponse:
    return ApiResponse(data=data, request_id=_request_id(request))


def error_response(
    code: int,
    error_code: str,
    message: str,
    details: Any = None,
    request: Request | None = None,
) -> ApiResponse:
    return ApiResponse(
        code=code,
        message=message,
        error_code=error_code,
        data=details,
        request_id=_request_id(request),
    )
