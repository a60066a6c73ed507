"""Authenticated request execution.

Binds each request to a credential scope, injects the bearer token and drives
it through the transport chain.
"""
from __future__ import annotations
import logging
from typing import Any, Optional, Union

import requests

from userapi.config import AppConfig

from .credentials import CredentialManager, Scope, get_credential_manager
from .exceptions import AuthenticationError
from .models import ApiResponse, RequestDescriptor
from .transport import Transport, build_transport_chain

logger = logging.getLogger(__name__)

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def scope_for_method(method: str) -> Scope:
    """State-changing verbs need the write scope; everything else reads."""
    return Scope.WRITE if method.upper() in WRITE_METHODS else Scope.READ


class AuthenticatingRequestExecutor:
    """Executes requests with a scoped bearer token.

    Usage:
        executor = AuthenticatingRequestExecutor(get_credential_manager(), build_transport_chain())
        response = executor.get("http://localhost:8080/api/users")
    """

    def __init__(self, credentials: CredentialManager, transport: Transport, evict_on_401: bool = False):
        """Initialize the executor.

        Args:
            credentials: Token source
            transport: Outermost stage of the transport chain
            evict_on_401: Drop the cached token of the request's scope when the
                API answers 401 (the next request then fetches a new token)
        """
        self.credentials = credentials
        self.transport = transport
        self.evict_on_401 = evict_on_401

    @classmethod
    def from_settings(
        cls,
        cfg: AppConfig,
        credentials: Optional[CredentialManager] = None,
        session: Optional[requests.Session] = None,
        evict_on_401: bool = False,
    ) -> "AuthenticatingRequestExecutor":
        """Wire the shared credential manager and the default transport chain."""
        transport = build_transport_chain(
            session=session,
            max_attempts=cfg.max_retries,
            timeout=cfg.request_timeout,
        )
        return cls(credentials or get_credential_manager(cfg), transport, evict_on_401=evict_on_401)

    def execute(self, request: RequestDescriptor) -> ApiResponse:
        """Authenticate and send ``request``.

        Raises:
            AuthenticationError: No usable token (nothing is sent) or the API answered 401
            requests.RequestException: Transport failure after the retry budget
            TransportExhaustedError: Every attempt returned a 5xx
        """
        scope = scope_for_method(request.method)
        try:
            token = self.credentials.get_token(scope)
        except AuthenticationError as e:
            logger.warning(f"Authentication failed for {request.method} {request.url}: {e.message}")
            raise
        logger.debug(f"Using {scope.value} token for {request.method} request")

        outcome = self.transport.execute(request.with_header("Authorization", f"Bearer {token}"))
        response = ApiResponse.from_outcome(outcome)
        logger.debug(f"Received response - Status Code: {response.status_code}")

        if response.status_code == 401:
            if self.evict_on_401:
                self.credentials.evict(scope)
            raise AuthenticationError("Authentication failed")
        return response

    def request(self, method: str, url: str, **kwargs: Any) -> ApiResponse:
        return self.execute(RequestDescriptor(method=method, url=url, **kwargs))

    def get(self, url: str, params: Optional[dict] = None, **kwargs: Any) -> ApiResponse:
        return self.request("GET", url, params=params, **kwargs)

    def post(self, url: str, json: Any = None, body: Optional[Union[str, bytes]] = None, **kwargs: Any) -> ApiResponse:
        return self.request("POST", url, json=json, body=body, **kwargs)

    def put(self, url: str, json: Any = None, **kwargs: Any) -> ApiResponse:
        return self.request("PUT", url, json=json, **kwargs)

    def patch(self, url: str, json: Any = None, **kwargs: Any) -> ApiResponse:
        return self.request("PATCH", url, json=json, **kwargs)

    def delete(self, url: str, json: Any = None, **kwargs: Any) -> ApiResponse:
        return self.request("DELETE", url, json=json, **kwargs)
