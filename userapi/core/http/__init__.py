"""Authenticated HTTP pipeline for the user management API.

Architecture:
- credentials.py: OAuth2 client-credentials token cache (read / write scopes)
- executor.py: scope selection, bearer injection, response normalization
- transport.py: HTTP leaf transport, logging wrapper, chain assembly
- retry.py: bounded retry wrapper (tenacity)
- models.py: request / response value objects
- exceptions.py: typed exceptions for error handling

Usage:
    from userapi.core.http import AuthenticatingRequestExecutor, build_transport_chain, get_credential_manager

    executor = AuthenticatingRequestExecutor(get_credential_manager(), build_transport_chain())
    response = executor.get("http://localhost:8080/api/users")
"""
from .credentials import (
    CredentialManager,
    Scope,
    TokenRecord,
    TokenState,
    INVALID_TOKEN,
    get_credential_manager,
    reset_credential_manager,
)
from .exceptions import (
    UserApiError,
    ApiError,
    AuthenticationError,
    AuthorizationError,
    ValidationError,
    ResourceNotFoundError,
    MethodNotAllowedError,
    ResourceConflictError,
    ExternalServiceError,
    RateLimitError,
    ServiceUnavailableError,
    TransportExhaustedError,
    error_for_response,
    ensure_status,
)
from .executor import AuthenticatingRequestExecutor, scope_for_method
from .models import ApiResponse, RequestDescriptor, ResponseOutcome
from .retry import RetryingTransport
from .transport import (
    HttpTransport,
    LoggingTransport,
    Transport,
    build_transport_chain,
    REQUEST_TIMEOUT,
)

__all__ = [
    # Credentials
    "CredentialManager",
    "Scope",
    "TokenRecord",
    "TokenState",
    "INVALID_TOKEN",
    "get_credential_manager",
    "reset_credential_manager",

    # Exceptions
    "UserApiError",
    "ApiError",
    "AuthenticationError",
    "AuthorizationError",
    "ValidationError",
    "ResourceNotFoundError",
    "MethodNotAllowedError",
    "ResourceConflictError",
    "ExternalServiceError",
    "RateLimitError",
    "ServiceUnavailableError",
    "TransportExhaustedError",
    "error_for_response",
    "ensure_status",

    # Execution
    "AuthenticatingRequestExecutor",
    "scope_for_method",

    # Models
    "ApiResponse",
    "RequestDescriptor",
    "ResponseOutcome",

    # Transports
    "Transport",
    "HttpTransport",
    "LoggingTransport",
    "RetryingTransport",
    "build_transport_chain",
    "REQUEST_TIMEOUT",
]
