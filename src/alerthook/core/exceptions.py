"""
Custom exceptions for AlertHook.

Each guard rejection is one of these; the application renders them
as short JSON error bodies with the matching HTTP status code.
"""

from typing import Any, Dict, Optional


class AlertHookException(Exception):
    """Base exception for AlertHook service."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class ValidationError(AlertHookException):
    """Raised when the request payload is malformed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            status_code=400,
            error_code="validation_error",
            details=details,
        )


class AuthenticationError(AlertHookException):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Invalid or missing authentication token") -> None:
        super().__init__(
            message=message,
            status_code=401,
            error_code="authentication_error",
        )


class ForbiddenError(AlertHookException):
    """Raised when the client address is not allow-listed."""

    def __init__(self, message: str = "Client address not allowed", client: Optional[str] = None) -> None:
        details = {}
        if client:
            details["client"] = client

        super().__init__(
            message=message,
            status_code=403,
            error_code="forbidden",
            details=details,
        )


class RateLimitError(AlertHookException):
    """Raised when rate limit is exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[int] = None,
    ) -> None:
        details = {}
        if retry_after:
            details["retry_after"] = retry_after

        super().__init__(
            message=message,
            status_code=429,
            error_code="rate_limit_exceeded",
            details=details,
        )
