"""Typed exceptions for the user API client."""
from __future__ import annotations
import json
from typing import TYPE_CHECKING, Dict, Optional

if TYPE_CHECKING:
    from .models import ApiResponse, ResponseOutcome

DEFAULT_RETRY_AFTER = 60


class UserApiError(Exception):
    """Base exception for all user API client operations."""
    pass


class ApiError(UserApiError):
    """Error reported by (or on behalf of) the remote API.

    Attributes:
        message: Human readable message
        status_code: HTTP status code the error corresponds to
        error_code: Stable machine readable code
    """

    status_code = 500
    error_code = "API_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None, error_code: Optional[str] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        super().__init__(f"[{self.status_code}] {self.error_code}: {message}")


class AuthenticationError(ApiError):
    """No usable bearer token, or the credentials were rejected.

    Never retried by the transport chain: callers fix credentials, not the network.
    """

    status_code = 401
    error_code = "AUTHENTICATION_ERROR"

    def __init__(self, message: str):
        super().__init__(message)


class AuthorizationError(ApiError):
    """Token lacks the permissions required by the endpoint."""

    status_code = 403
    error_code = "AUTHORIZATION_ERROR"

    def __init__(self, message: str):
        super().__init__(message)


class ValidationError(ApiError):
    """Request input was rejected.

    Attributes:
        errors: Mapping of field name to error message
    """

    status_code = 400
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        self.errors = dict(errors or {})
        super().__init__(message)


class ResourceNotFoundError(ApiError):
    status_code = 404
    error_code = "RESOURCE_NOT_FOUND"

    def __init__(self, message: str):
        super().__init__(message)


class MethodNotAllowedError(ApiError):
    status_code = 405
    error_code = "METHOD_NOT_ALLOWED"

    def __init__(self, message: str):
        super().__init__(message)


class ResourceConflictError(ApiError):
    status_code = 409
    error_code = "RESOURCE_CONFLICT"

    def __init__(self, message: str):
        super().__init__(message)


class ExternalServiceError(ApiError):
    """A dependency of the remote API failed (e.g. unavailable zip code)."""

    status_code = 424
    error_code = "FAILED_DEPENDENCY"

    def __init__(self, message: str):
        super().__init__(message)


class RateLimitError(ApiError):
    """Too many requests.

    Attributes:
        retry_after: Seconds the server asked us to wait
    """

    status_code = 429
    error_code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, message: str, retry_after: int = DEFAULT_RETRY_AFTER):
        self.retry_after = retry_after
        super().__init__(message)


class ServiceUnavailableError(ApiError):
    status_code = 503
    error_code = "SERVICE_UNAVAILABLE"

    def __init__(self, message: str):
        super().__init__(message)


class TransportExhaustedError(UserApiError):
    """Every attempt ended in a retryable server response.

    Attributes:
        attempts: Number of attempts made
        last_response: Outcome of the final attempt
    """

    def __init__(self, attempts: int, last_response: Optional["ResponseOutcome"] = None):
        self.attempts = attempts
        self.last_response = last_response
        status = f" (last status {last_response.status_code})" if last_response is not None else ""
        super().__init__(f"Failed to execute request after {attempts} attempts{status}")


_STATUS_ERRORS = {
    400: (ValidationError, "Invalid request"),
    401: (AuthenticationError, "Authentication failed"),
    403: (AuthorizationError, "Access denied"),
    404: (ResourceNotFoundError, "Resource not found"),
    405: (MethodNotAllowedError, "Method not allowed"),
    409: (ResourceConflictError, "Resource conflict"),
    424: (ExternalServiceError, "Failed dependency"),
    503: (ServiceUnavailableError, "Service unavailable"),
}


def error_for_response(response: "ApiResponse") -> Optional[ApiError]:
    """Map a non-success response onto the matching ApiError.

    Returns None for status codes below 400.
    """
    status = response.status_code
    if status < 400:
        return None

    detail = response.body.strip() if response.body else ""
    if status == 400:
        return ValidationError(detail or "Invalid request", _validation_errors(detail))
    if status == 429:
        return RateLimitError(detail or "Rate limit exceeded", retry_after=_retry_after(response))
    if status in _STATUS_ERRORS:
        error_cls, fallback = _STATUS_ERRORS[status]
        return error_cls(detail or fallback)
    return ApiError(detail or f"Unexpected status {status}", status_code=status)


def _validation_errors(body: str) -> Dict[str, str]:
    """Extract the field error map from a JSON error body ({} if absent or not JSON)."""
    try:
        payload = json.loads(body)
    except ValueError:
        return {}
    errors = payload.get("errors") if isinstance(payload, dict) else None
    return dict(errors) if isinstance(errors, dict) else {}


def _retry_after(response: "ApiResponse") -> int:
    value = (response.headers or {}).get("Retry-After")
    if value is None:
        return DEFAULT_RETRY_AFTER
    try:
        return int(value)
    except ValueError:
        return DEFAULT_RETRY_AFTER


def ensure_status(response: "ApiResponse", expected: int, action: str) -> None:
    """Raise the mapped ApiError unless ``response`` has the expected status."""
    if response.status_code == expected:
        return
    error = error_for_response(response)
    if error is None:
        error = ApiError(
            f"Failed to {action}. Status code: {response.status_code}, Response: {response.body}",
            status_code=response.status_code,
            error_code="UNEXPECTED_STATUS",
        )
    raise error
