"""
Shared error handling for the headless content gateway.

Every failure that may reach a client is a ``ContentLayerException`` carrying
a stable ``code`` and the HTTP ``status_code`` the error responder uses.
"""

from typing import Dict, Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.logging import get_request_id


class ErrorResponse(BaseModel):
    """Standard error response format."""

    model_config = ConfigDict(populate_by_name=True)

    status: int = Field(serialization_alias="_status", validation_alias="_status")
    code: str
    message: str
    details: Dict[str, Any] = {}
    request_id: Optional[str] = None


class ContentLayerException(Exception):
    """Base exception for content gateway services."""

    default_status = 500

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.status_code = status_code or self.default_status
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            status=self.status_code,
            code=self.code,
            message=self.message,
            details=self.details,
            request_id=get_request_id(),
        )


class ConfigError(ContentLayerException):
    """Route or resource configuration is missing or inconsistent."""

    default_status = 400

    def __init__(self, message: str = "Invalid route configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIG_ERROR", message, details)


class UpstreamError(ContentLayerException):
    """The upstream content API answered with a failure or was unreachable."""

    default_status = 502

    def __init__(
        self,
        status: Optional[int] = None,
        body: Optional[str] = None,
        message: str = "Upstream request failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.status = status
        self.body = body
        merged = {"upstream_status": status}
        merged.update(details or {})
        # Only upstream error statuses pass through; redirects and other
        # non-error codes become a bad gateway.
        passthrough = status if status is not None and status >= 400 else None
        super().__init__("UPSTREAM_ERROR", message, merged, status_code=passthrough)


class ShapeError(ContentLayerException):
    """Upstream payload does not match the shape expected for the resource type."""

    def __init__(self, message: str = "Unexpected upstream payload shape", details: Optional[Dict[str, Any]] = None):
        super().__init__("SHAPE_ERROR", message, details)


class RenderError(ContentLayerException):
    """Template is missing or failed while rendering."""

    def __init__(self, message: str = "Template rendering failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("RENDER_ERROR", message, details)


class InvalidationError(ContentLayerException):
    """Explicit cache invalidation could not be confirmed."""

    def __init__(self, message: str = "Cache invalidation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALIDATION_ERROR", message, details)


class ValidationError(ContentLayerException):
    """Validation-related errors."""

    default_status = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(ContentLayerException):
    """No route matched the request."""

    default_status = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class ServiceError(ContentLayerException):
    """Service-related errors."""

    def __init__(self, message: str = "Service error", details: Optional[Dict[str, Any]] = None, status_code: Optional[int] = None):
        super().__init__("SERVICE_ERROR", message, details, status_code=status_code)


class StoreUnavailable(Exception):
    """Raised by cache stores when the backing store cannot be reached.

    Deliberately outside the ``ContentLayerException`` hierarchy: callers
    decide whether it is absorbed (read path) or surfaced (invalidation).
    """

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"cache store unavailable during {operation}: {reason}")
