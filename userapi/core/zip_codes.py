"""Zip code reference data operations."""
from __future__ import annotations
import logging
from typing import Iterable, List

from .http import AuthenticatingRequestExecutor, ensure_status

logger = logging.getLogger(__name__)


class ZipCodeService:
    """Service for the /zip-codes endpoints."""

    def __init__(self, executor: AuthenticatingRequestExecutor, api_base_url: str):
        self.executor = executor
        self.api_base_url = api_base_url.rstrip("/")

    def get_available_zip_codes(self) -> List[str]:
        """Return the codes currently available for assignment."""
        response = self.executor.get(f"{self.api_base_url}/zip-codes")
        ensure_status(response, 200, "fetch zip codes")
        codes = []
        for item in response.json() or []:
            codes.append(item["code"] if isinstance(item, dict) else str(item))
        logger.info(f"Extracted zip codes: {codes}")
        return codes

    def add_zip_codes(self, zip_codes: Iterable[str]) -> None:
        response = self.executor.post(f"{self.api_base_url}/zip-codes/expand", json=list(zip_codes))
        ensure_status(response, 201, "add zip codes")

    def reset_zip_codes(self, zip_codes: Iterable[str]) -> None:
        """Replace the available codes with exactly ``zip_codes``."""
        codes = list(zip_codes)
        logger.info(f"Sending request to reset zip codes: {codes}")
        response = self.executor.post(f"{self.api_base_url}/zip-codes/reset", json=codes)
        logger.info(f"Reset zip codes response status code: {response.status_code}")
        ensure_status(response, 200, "reset zip codes")
