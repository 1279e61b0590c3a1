"""Storefront exceptions with machine-readable error codes."""

from typing import Any, Optional


class StorefrontError(Exception):
    """Base exception for the muffin storefront."""

    def __init__(
        self,
        message: str,
        code: str = "server_error",
        category: str = "system",
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(StorefrontError):
    """Required credential, base id or table name is missing. Raised before any network call."""

    def __init__(
        self,
        message: str,
        code: str = "airtable_config",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, "configuration", details)


class ValidationError(StorefrontError):
    """Malformed or missing input - 400 Bad Request."""

    def __init__(
        self,
        message: str,
        code: str = "invalid_request",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, "validation", details)


class UnauthorizedError(StorefrontError):
    """Admin token missing or mismatched - 401."""

    def __init__(
        self,
        message: str = "Admin token required",
        code: str = "unauthorized",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, "unauthorized", details)


class NotFoundError(StorefrontError):
    """Record not found - 404."""

    def __init__(
        self,
        message: str,
        code: str = "not_found",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, "validation", details)


class ConflictError(StorefrontError):
    """Lookup or capacity conflict - 409."""

    def __init__(
        self,
        message: str,
        code: str = "conflict",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, "validation", details)


class UpstreamError(StorefrontError):
    """Record store, payment processor or SMS provider returned a failure - 502."""

    def __init__(
        self,
        message: str,
        code: str = "upstream_error",
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        d = details or {}
        if status_code is not None:
            d["upstream_status"] = status_code
        self.status_code = status_code
        super().__init__(message, code, "upstream", d)
