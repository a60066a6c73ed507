"""Bounded retry policy layered over any transport.

Decision policy per attempt:
- status in [200, 500): returned as is (client errors are never retried)
- 5xx or a transport exception (connection failure, timeout): retried

When the attempt budget runs out the last exception is re-raised; if the last
attempt produced a 5xx instead, TransportExhaustedError is raised.
"""
from __future__ import annotations
import logging
import time
from typing import TYPE_CHECKING, Callable, Tuple, Type

import requests
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
    wait_none,
)

from .exceptions import TransportExhaustedError
from .models import RequestDescriptor, ResponseOutcome

if TYPE_CHECKING:
    from .transport import Transport

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
RETRYABLE_EXCEPTIONS: Tuple[Type[BaseException], ...] = (requests.RequestException,)


def _is_retryable_outcome(outcome: object) -> bool:
    return isinstance(outcome, ResponseOutcome) and outcome.retryable


class RetryingTransport:
    """Re-executes the inner transport on transient failure."""

    def __init__(
        self,
        inner: "Transport",
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = 0.0,
        backoff_max: float = 10.0,
        retry_on: Tuple[Type[BaseException], ...] = RETRYABLE_EXCEPTIONS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the retry wrapper.

        Args:
            inner: Next stage of the chain
            max_attempts: Total attempts, including the first one
            backoff_base: Exponential backoff multiplier in seconds (0 disables waiting)
            backoff_max: Upper bound for a single wait in seconds
            retry_on: Exception types treated as transient
            sleep: Sleep function (injectable for tests)
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.inner = inner
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.retry_on = retry_on
        self._sleep = sleep

    def _wait_strategy(self):
        if self.backoff_base <= 0:
            return wait_none()
        return wait_exponential(multiplier=self.backoff_base, max=self.backoff_max)

    def _policy(self, request: RequestDescriptor) -> Retrying:
        def before(retry_state: RetryCallState) -> None:
            logger.debug(
                f"Attempt {retry_state.attempt_number}/{self.max_attempts} for request: {request.method} {request.url}"
            )

        def before_sleep(retry_state: RetryCallState) -> None:
            outcome = retry_state.outcome
            if outcome.failed:
                reason = f"{type(outcome.exception()).__name__}: {outcome.exception()}"
            else:
                reason = f"status {outcome.result().status_code}"
            logger.warning(
                f"Attempt {retry_state.attempt_number} failed for request: "
                f"{request.method} {request.url} ({reason}). Retrying..."
            )

        def on_exhausted(retry_state: RetryCallState) -> ResponseOutcome:
            outcome = retry_state.outcome
            attempts = retry_state.attempt_number
            logger.error(f"All {attempts} attempts failed for request: {request.method} {request.url}")
            if outcome.failed:
                raise outcome.exception()
            raise TransportExhaustedError(attempts, outcome.result())

        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait_strategy(),
            retry=retry_if_exception_type(self.retry_on) | retry_if_result(_is_retryable_outcome),
            before=before,
            before_sleep=before_sleep,
            retry_error_callback=on_exhausted,
            sleep=self._sleep,
        )

    def execute(self, request: RequestDescriptor) -> ResponseOutcome:
        return self._policy(request)(self.inner.execute, request)
