"""Test-automation client for the OAuth2-protected user management API."""

__version__ = "1.0.0"
