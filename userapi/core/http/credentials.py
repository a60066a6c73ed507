"""OAuth2 client-credentials token lifecycle.

CredentialManager is the single source of truth for the two scoped bearer
tokens (read / write). It caches each token until ``expires_at - buffer``,
fetches a new one on demand and supports explicit invalidation for tests that
exercise unauthenticated paths.

Locking:
- ``_lock`` guards the token slots and the invalidated flag
- one lock per scope serializes check-fetch-store, so concurrent callers of a
  scope trigger a single token request while the other scope stays independent
- the token request itself runs outside ``_lock``

Usage:
    manager = get_credential_manager()
    token = manager.get_token("read")
"""
from __future__ import annotations
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Optional, Tuple, Union

import requests
from requests.auth import HTTPBasicAuth

from userapi.config import AppConfig, load_settings

from .exceptions import AuthenticationError
from .transport import REQUEST_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_BUFFER = timedelta(minutes=5)
INVALID_TOKEN = "invalid_token"


class Scope(str, Enum):
    """OAuth2 permission class of a token."""

    READ = "read"
    WRITE = "write"

    @classmethod
    def parse(cls, value: Union["Scope", str]) -> "Scope":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown token scope: {value!r}") from None


class TokenState(str, Enum):
    ABSENT = "absent"
    VALID = "valid"
    EXPIRED = "expired"
    INVALID = "invalid"
    INVALIDATED = "invalidated"


@dataclass(frozen=True)
class TokenRecord:
    scope: Scope
    value: str
    expires_at: Optional[datetime]
    invalid: bool = False

    @classmethod
    def invalid_sentinel(cls, scope: Scope) -> "TokenRecord":
        return cls(scope=scope, value=INVALID_TOKEN, expires_at=None, invalid=True)

    def is_expired(self, now: datetime, buffer: timedelta) -> bool:
        return self.expires_at is None or now >= self.expires_at - buffer

    def __repr__(self) -> str:
        return f"TokenRecord(scope={self.scope.value!r}, expires_at={self.expires_at!r}, invalid={self.invalid})"


class CredentialManager:
    """Thread-safe cache of scoped bearer tokens.

    Features:
    - Lazy fetch per scope, refreshed ``expiry_buffer`` before expiry
    - At most one token request in flight per scope
    - ``invalidate()`` / ``set_invalid()`` / ``validate()`` state controls

    Token requests never go through the retry transport: a rejected credential
    is not a transient failure.
    """

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        expiry_buffer: timedelta = DEFAULT_EXPIRY_BUFFER,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
        now: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the manager.

        Args:
            token_url: OAuth2 token endpoint
            client_id: Client identifier
            client_secret: Client secret
            expiry_buffer: Grace period before expiry at which tokens are refreshed
            session: Session used for token requests
            timeout: Token request timeout in seconds
            now: Clock (injectable for tests)
        """
        self.token_url = token_url
        self.client_id = client_id
        self._client_secret = client_secret
        self.expiry_buffer = expiry_buffer
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self._now = now

        self._lock = threading.Lock()
        self._scope_locks: Dict[Scope, threading.Lock] = {scope: threading.Lock() for scope in Scope}
        self._tokens: Dict[Scope, Optional[TokenRecord]] = {scope: None for scope in Scope}
        self._tokens_invalidated = False
        # bumped by every state control; fetches started before a bump are discarded
        self._generation = 0

    @classmethod
    def from_settings(cls, cfg: AppConfig, session: Optional[requests.Session] = None) -> "CredentialManager":
        return cls(
            token_url=cfg.token_url,
            client_id=cfg.client_id,
            client_secret=cfg.client_secret,
            expiry_buffer=cfg.token_expiry_buffer,
            session=session,
            timeout=cfg.request_timeout,
        )

    @property
    def tokens_invalidated(self) -> bool:
        with self._lock:
            return self._tokens_invalidated

    # ─────────────────────────────────────────────────────────────────────
    # Token access
    # ─────────────────────────────────────────────────────────────────────
    def get_token(self, scope: Union[Scope, str]) -> str:
        """Return a usable token for ``scope``, fetching one if needed.

        Raises:
            AuthenticationError: Tokens invalidated or invalid, or the token
                endpoint failed
            ValueError: Unknown scope
        """
        scope = Scope.parse(scope)
        with self._scope_locks[scope]:
            with self._lock:
                cached = self._cached_value(scope)
            if cached is not None:
                return cached
            return self._fetch_and_store(scope)

    def fetch(self, scope: Union[Scope, str]) -> str:
        """Request a fresh token for ``scope`` and cache it, ignoring any cached value."""
        scope = Scope.parse(scope)
        with self._scope_locks[scope]:
            with self._lock:
                self._ensure_usable(scope)
            return self._fetch_and_store(scope)

    def token_state(self, scope: Union[Scope, str]) -> TokenState:
        scope = Scope.parse(scope)
        with self._lock:
            if self._tokens_invalidated:
                return TokenState.INVALIDATED
            record = self._tokens[scope]
            if record is None:
                return TokenState.ABSENT
            if record.invalid:
                return TokenState.INVALID
            if record.is_expired(self._now(), self.expiry_buffer):
                return TokenState.EXPIRED
            return TokenState.VALID

    # ─────────────────────────────────────────────────────────────────────
    # State controls
    # ─────────────────────────────────────────────────────────────────────
    def invalidate(self) -> None:
        """Drop both tokens and refuse to hand out new ones until validate()."""
        with self._lock:
            self._tokens = {scope: None for scope in Scope}
            self._tokens_invalidated = True
            self._generation += 1
        logger.info("Tokens have been invalidated")

    def set_invalid(self) -> None:
        """Replace both tokens with the invalid sentinel."""
        with self._lock:
            self._tokens = {scope: TokenRecord.invalid_sentinel(scope) for scope in Scope}
            self._generation += 1
        logger.info("Tokens have been set to invalid")

    def validate(self) -> None:
        """Return to a clean state; tokens are fetched again on next demand."""
        with self._lock:
            self._tokens = {scope: None for scope in Scope}
            self._tokens_invalidated = False
            self._generation += 1
        logger.info("Tokens have been validated")

    def evict(self, scope: Union[Scope, str]) -> None:
        """Forget the cached token of one scope; the other scope is untouched."""
        scope = Scope.parse(scope)
        with self._lock:
            record = self._tokens[scope]
            if record is not None and not record.invalid:
                self._tokens[scope] = None
        logger.debug(f"Evicted cached {scope.value} token")

    # ─────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────
    def _ensure_usable(self, scope: Scope) -> None:
        """Raise if the scope is blocked. Caller holds ``_lock``."""
        if self._tokens_invalidated:
            logger.info("Tokens are invalidated")
            raise AuthenticationError("Tokens have been invalidated")
        record = self._tokens[scope]
        if record is not None and record.invalid:
            logger.info(f"{scope.value.capitalize()} token is explicitly set to invalid")
            raise AuthenticationError(f"Invalid {scope.value} token")

    def _cached_value(self, scope: Scope) -> Optional[str]:
        """Return the cached token if still fresh. Caller holds ``_lock``."""
        self._ensure_usable(scope)
        record = self._tokens[scope]
        if record is None:
            return None
        if record.is_expired(self._now(), self.expiry_buffer):
            logger.info(f"Cached {scope.value} token expired or about to expire; refreshing")
            return None
        return record.value

    def _fetch_and_store(self, scope: Scope) -> str:
        """Fetch a token and cache it. Caller holds the scope lock."""
        with self._lock:
            generation = self._generation
        value, expires_in = self._request_token(scope)
        record = TokenRecord(scope=scope, value=value, expires_at=self._now() + timedelta(seconds=expires_in))
        with self._lock:
            self._ensure_usable(scope)
            if self._generation != generation:
                logger.info(f"Token state changed during the {scope.value} token request; discarding token")
                raise AuthenticationError(f"Token state changed while the {scope.value} token was requested")
            self._tokens[scope] = record
        if timedelta(seconds=expires_in) <= self.expiry_buffer:
            logger.warning(
                f"Token lifetime for scope '{scope.value}' ({expires_in}s) does not exceed the expiry buffer; "
                "every request will fetch a new token"
            )
        return value

    def _request_token(self, scope: Scope) -> Tuple[str, int]:
        """Fetch a token using the client credentials flow."""
        data = {"grant_type": "client_credentials", "scope": scope.value}
        try:
            resp = self.session.post(
                self.token_url,
                data=data,
                auth=HTTPBasicAuth(self.client_id, self._client_secret),
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Token endpoint unreachable: {e}")
            raise AuthenticationError(f"Token endpoint unreachable: {e}") from e

        if not 200 <= resp.status_code < 300:
            logger.error(f"Token request for scope '{scope.value}' failed with status {resp.status_code}")
            raise AuthenticationError(
                f"Token request for scope '{scope.value}' rejected with status {resp.status_code}"
            )

        try:
            payload = resp.json()
            token = payload["access_token"]
            expires_in = int(payload["expires_in"])
        except (ValueError, KeyError, TypeError) as e:
            raise AuthenticationError(f"Malformed token response for scope '{scope.value}'") from e

        if not isinstance(token, str) or not token:
            raise AuthenticationError(f"Token response for scope '{scope.value}' has no access_token")
        if expires_in < 0:
            raise AuthenticationError(f"Token response for scope '{scope.value}' has negative expires_in")

        logger.debug(f"Obtained {scope.value} token (expires_in={expires_in}s)")
        return token, expires_in


# Shared instance (created on first access)
_manager: Optional[CredentialManager] = None
_manager_lock = threading.Lock()


def get_credential_manager(cfg: Optional[AppConfig] = None) -> CredentialManager:
    """Return the process-wide CredentialManager, creating it exactly once.

    Args:
        cfg: Settings used on first creation (loaded from the environment if omitted).
            Ignored once the instance exists.
    """
    global _manager

    if _manager is None:
        with _manager_lock:
            if _manager is None:
                _manager = CredentialManager.from_settings(cfg if cfg is not None else load_settings())
                logger.info(f"Initialized credential manager for: {_manager.token_url}")
    return _manager


def reset_credential_manager() -> None:
    """Drop the shared instance (test sessions)."""
    global _manager
    with _manager_lock:
        _manager = None
