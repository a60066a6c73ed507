"""Configuration module for the user API client."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
