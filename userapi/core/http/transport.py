"""Transport chain: a leaf HTTP transport and composable wrappers.

Every stage exposes ``execute(request) -> ResponseOutcome``. Wrappers hold a
reference to the next stage and add one concern each:

- HttpTransport: single request/response exchange over a requests.Session
- LoggingTransport: records method, URL and status (or the raised error)
- RetryingTransport (retry.py): bounded re-execution on transient failure
"""
from __future__ import annotations
import logging
from typing import Optional, Protocol

import requests
from requests.structures import CaseInsensitiveDict

from .models import RequestDescriptor, ResponseOutcome
from .retry import RetryingTransport

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 5


class Transport(Protocol):
    """Anything able to execute a RequestDescriptor."""

    def execute(self, request: RequestDescriptor) -> ResponseOutcome:
        ...


class HttpTransport:
    """Leaf transport performing the actual blocking HTTP call."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = REQUEST_TIMEOUT):
        """Initialize the transport.

        Args:
            session: Session to send requests with (a new one is created if omitted)
            timeout: Per-request timeout in seconds
        """
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def execute(self, request: RequestDescriptor) -> ResponseOutcome:
        resp = self.session.request(
            request.method,
            request.url,
            headers=dict(request.headers),
            params=dict(request.params) if request.params is not None else None,
            data=request.body,
            json=request.json,
            files=dict(request.files) if request.files is not None else None,
            timeout=self.timeout,
        )
        return ResponseOutcome(
            status_code=resp.status_code,
            body=resp.text or "",
            headers=CaseInsensitiveDict(resp.headers or {}),
        )


class LoggingTransport:
    """Observability wrapper; never changes the outcome or swallows errors."""

    def __init__(self, inner: Transport, log: Optional[logging.Logger] = None):
        self.inner = inner
        self.log = log or logger

    def execute(self, request: RequestDescriptor) -> ResponseOutcome:
        self.log.info(f"Executing request: {request.method} {request.url}")
        try:
            outcome = self.inner.execute(request)
        except Exception as e:
            self.log.warning(f"Request failed: {request.method} {request.url} -> {type(e).__name__}: {e}")
            raise
        self.log.info(f"Received response: {request.method} {request.url} -> {outcome.status_code}")
        return outcome


def build_transport_chain(
    session: Optional[requests.Session] = None,
    max_attempts: int = 3,
    timeout: float = REQUEST_TIMEOUT,
    backoff_base: float = 0.0,
    backoff_max: float = 10.0,
) -> Transport:
    """Assemble the default chain: logging -> retry -> HTTP."""
    http = HttpTransport(session=session, timeout=timeout)
    retrying = RetryingTransport(http, max_attempts=max_attempts, backoff_base=backoff_base, backoff_max=backoff_max)
    return LoggingTransport(retrying)
