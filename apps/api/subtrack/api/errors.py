from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from subtrack.context import get_correlation_id


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    details: Any
    correlation_id: str | None


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    payload = ErrorEnvelope(
        code=code,
        message=message,
        details=details,
        correlation_id=correlation_id,
    )
    return JSONResponse(status_code=status_code, content=payload.__dict__)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    in_body = any(tuple(error.get("loc", ()))[:1] == ("body",) for error in exc.errors())
    if in_body:
        code, message = "invalid_request_body", "Invalid request body"
    else:
        code, message = "invalid_request", "Invalid request parameters"
    details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return error_response(
        request,
        status_code=status.HTTP_400_BAD_REQUEST,
        code=code,
        message=message,
        details=details,
    )
