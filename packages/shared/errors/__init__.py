"""Standardized error handling for the storefront service."""

from .models import ErrorResponse, create_error_response
from .exceptions import (
    StorefrontError,
    ConfigurationError,
    ValidationError,
    UnauthorizedError,
    NotFoundError,
    ConflictError,
    UpstreamError,
)

__all__ = [
    "ErrorResponse",
    "create_error_response",
    "StorefrontError",
    "ConfigurationError",
    "ValidationError",
    "UnauthorizedError",
    "NotFoundError",
    "ConflictError",
    "UpstreamError",
]
