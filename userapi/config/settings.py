"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEMO_API_BASE_URL = "http://localhost:8080/api"
DEMO_TOKEN_URL = "http://localhost:8080/oauth2/token"
DEMO_CLIENT_ID = "demo-client"
DEMO_CLIENT_SECRET = "demo-secret"


def _load_secret_from_file(secret_name: str, env_var: str | None = None,
                           environ: Optional[Mapping[str, str]] = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback
        environ: Mapping to read the fallback from (defaults to os.environ)

    Returns:
        Secret value or None if not found
    """
    environ = os.environ if environ is None else environ
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                logger.info(f"Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            logger.warning(f"Failed to read /run/secrets/{secret_name}: {e}")

    if env_var:
        secret_value = environ.get(env_var)
        if secret_value:
            return secret_value

    return None


@dataclass(frozen=True)
class AppConfig:
    """Client configuration container."""
    demo_mode: bool

    # Endpoints
    api_base_url: str
    token_url: str

    # OAuth2 client credentials
    client_id: str
    client_secret: str

    # Transport
    max_retries: int = 3
    request_timeout: float = 5.0

    # Grace period before expiry at which a token is refreshed (milliseconds)
    token_expiry_buffer_ms: int = 300_000

    @property
    def token_expiry_buffer(self) -> timedelta:
        return timedelta(milliseconds=self.token_expiry_buffer_ms)

    def __repr__(self) -> str:
        return (
            f"AppConfig(demo_mode={self.demo_mode}, api_base_url={self.api_base_url!r}, "
            f"token_url={self.token_url!r}, client_id={self.client_id!r}, client_secret='***', "
            f"max_retries={self.max_retries}, request_timeout={self.request_timeout}, "
            f"token_expiry_buffer_ms={self.token_expiry_buffer_ms})"
        )


def _get_or_default(environ: Mapping[str, str], var_name: str, demo_default: Optional[str] = None,
                    demo_mode: bool = False) -> str:
    """Get environment variable or fall back to the demo default."""
    value = environ.get(var_name)
    if value:
        return value

    if demo_mode and demo_default is not None:
        logger.debug(f"[demo-mode] Using default for {var_name}")
        return demo_default

    raise RuntimeError(f"Environment variable {var_name} is required in production mode.")


def _parse_int(environ: Mapping[str, str], var_name: str, default: int, minimum: int = 0) -> int:
    raw = environ.get(var_name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{var_name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{var_name} must be >= {minimum}, got {value}")
    return value


def _parse_float(environ: Mapping[str, str], var_name: str, default: float) -> float:
    raw = environ.get(var_name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{var_name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{var_name} must be positive, got {value}")
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Load client settings from environment and /run/secrets.

    Args:
        environ: Mapping of variables to read (defaults to os.environ)

    Raises:
        RuntimeError: If a required value is missing outside demo mode
        ValueError: If a numeric value cannot be parsed
    """
    environ = os.environ if environ is None else environ
    demo_mode = environ.get("DEMO_MODE", "false").lower() == "true"

    api_base_url = _get_or_default(environ, "API_BASE_URL", DEMO_API_BASE_URL, demo_mode).rstrip("/")
    token_url = _get_or_default(environ, "OAUTH2_TOKEN_URL", DEMO_TOKEN_URL, demo_mode)
    client_id = _get_or_default(environ, "OAUTH2_CLIENT_ID", DEMO_CLIENT_ID, demo_mode)

    client_secret = _load_secret_from_file("oauth2_client_secret", "OAUTH2_CLIENT_SECRET", environ)
    if not client_secret:
        if not demo_mode:
            raise RuntimeError("OAUTH2_CLIENT_SECRET not found in /run/secrets or environment")
        client_secret = DEMO_CLIENT_SECRET

    max_retries = _parse_int(environ, "HTTP_MAX_RETRIES", 3, minimum=1)
    token_expiry_buffer_ms = _parse_int(environ, "OAUTH2_TOKEN_EXPIRY_BUFFER_MS", 300_000)
    request_timeout = _parse_float(environ, "HTTP_REQUEST_TIMEOUT", 5.0)

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    logger.info(f"Mode={mode_label}; api={api_base_url}; client_id={client_id}")
    if demo_mode:
        logger.warning("Demo credentials in use. Do not point these defaults at a shared environment.")

    return AppConfig(
        demo_mode=demo_mode,
        api_base_url=api_base_url,
        token_url=token_url,
        client_id=client_id,
        client_secret=client_secret,
        max_retries=max_retries,
        request_timeout=request_timeout,
        token_expiry_buffer_ms=token_expiry_buffer_ms,
    )
