"""Error envelope returned by every storefront endpoint."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Small JSON envelope: `ok` is always false, `error` is a short machine-readable code."""

    ok: bool = False
    error: str = Field(..., description="Machine-readable error code, e.g. invalid_date")
    message: Optional[str] = Field(default=None, description="Human-readable summary")
    detail: Optional[Any] = Field(
        default=None,
        description="Best-effort debug context (upstream status, hints)",
    )
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


def create_error_response(
    code: str,
    message: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> ErrorResponse:
    """Create the error envelope."""
    return ErrorResponse(
        error=code,
        message=message,
        detail=details or None,
        request_id=request_id,
    )
