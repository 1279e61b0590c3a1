"""FastAPI error handling and request-id middleware."""

import logging
import uuid
from typing import Callable

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from packages.shared.monitoring.logging import request_id_var
from .models import create_error_response
from .exceptions import (
    StorefrontError,
    ConfigurationError,
    ValidationError,
    NotFoundError,
    UnauthorizedError,
    ConflictError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

EXCEPTION_STATUS_MAP = {
    ValidationError: 400,
    UnauthorizedError: 401,
    NotFoundError: 404,
    ConflictError: 409,
    ConfigurationError: 500,
    UpstreamError: 502,
}


def get_request_id(request: Request) -> str:
    """Get or create request ID for correlation."""
    request_id = request.headers.get("X-Request-ID") or getattr(
        request.state, "request_id", None
    )
    if not request_id:
        request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    return request_id


async def request_id_middleware(request: Request, call_next: Callable) -> Response:
    """Attach a request ID to the request, the log records it produces and the response."""
    request_id = get_request_id(request)
    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["X-Request-ID"] = request_id
    return response


def storefront_exception_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    """Render StorefrontError as the {ok: false, error} envelope."""
    request_id = get_request_id(request)
    status = EXCEPTION_STATUS_MAP.get(type(exc))
    if status is None:
        status = next(
            (code for cls, code in EXCEPTION_STATUS_MAP.items() if isinstance(exc, cls)),
            500,
        )

    error_response = create_error_response(
        code=exc.code,
        message=exc.message,
        details=exc.details,
        request_id=request_id,
    )

    logger.warning(
        "Storefront error %s: %s",
        exc.code,
        exc.message,
        extra={"context": {"category": exc.category, "status": status, **exc.details}},
    )

    return JSONResponse(
        status_code=status,
        content=error_response.model_dump(exclude_none=True),
        headers={"X-Request-ID": request_id},
    )


def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request model failures become 400 invalid_request instead of FastAPI's 422."""
    request_id = get_request_id(request)
    error_response = create_error_response(
        code="invalid_request",
        message="Request body or query parameters are malformed",
        details={"errors": [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()
        ]},
        request_id=request_id,
    )
    return JSONResponse(
        status_code=400,
        content=error_response.model_dump(exclude_none=True),
        headers={"X-Request-ID": request_id},
    )


def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions - return 500 server_error."""
    request_id = get_request_id(request)

    error_response = create_error_response(
        code="server_error",
        message="An unexpected error occurred. Please try again later.",
        request_id=request_id,
    )

    logger.exception("Unhandled exception", exc_info=exc)

    return JSONResponse(
        status_code=500,
        content=error_response.model_dump(exclude_none=True),
        headers={"X-Request-ID": request_id},
    )
