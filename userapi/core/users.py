"""User management operations against the /users endpoints."""
from __future__ import annotations
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from .http import (
    ApiResponse,
    AuthenticatingRequestExecutor,
    ResourceNotFoundError,
    ValidationError,
    ensure_status,
)

logger = logging.getLogger(__name__)

AGE_FILTERS = ("olderThan", "youngerThan")


@dataclass(frozen=True)
class User:
    """User representation; unset fields are left out of payloads."""

    name: Optional[str] = None
    email: Optional[str] = None
    sex: Optional[str] = None
    age: Optional[int] = None
    zip_code: Optional[str] = None

    def to_payload(self, nested_zip_code: bool = False) -> Dict[str, Any]:
        """Render the JSON payload.

        Args:
            nested_zip_code: Render the zip code as ``{"code": ...}`` (create and
                update-by-id endpoints) instead of a plain string
        """
        payload: Dict[str, Any] = {}
        for key in ("name", "email", "sex", "age"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.zip_code:
            payload["zipCode"] = {"code": self.zip_code} if nested_zip_code else self.zip_code
        return payload


@dataclass(frozen=True)
class UserUpdate:
    """Replace the user matching ``user_to_change`` with ``user_new_values``."""

    user_new_values: User
    user_to_change: User

    def to_payload(self) -> Dict[str, Any]:
        return {
            "userNewValues": self.user_new_values.to_payload(),
            "userToChange": self.user_to_change.to_payload(),
        }


class UserService:
    """Service for managing users."""

    def __init__(self, executor: AuthenticatingRequestExecutor, api_base_url: str):
        """Initialize user service.

        Args:
            executor: Authenticated request executor
            api_base_url: API root (e.g. http://localhost:8080/api)
        """
        self.executor = executor
        self.api_base_url = api_base_url.rstrip("/")

    def _url(self, path: str) -> str:
        return f"{self.api_base_url}{path}"

    def get_users(self, params: Optional[Mapping[str, str]] = None) -> ApiResponse:
        """List users, optionally filtered (olderThan, youngerThan, sex).

        Raises:
            ValidationError: Age filter is not an integer (nothing is sent)
        """
        params = dict(params or {})
        errors = {}
        for key in AGE_FILTERS:
            if key in params:
                try:
                    int(params[key])
                except (TypeError, ValueError):
                    errors[key] = "must be a number"
        if errors:
            logger.warning(f"Invalid age parameter(s): {errors}")
            raise ValidationError("Invalid age parameter: must be a number", errors)

        logger.info(f"Fetching users with query parameters: {params}")
        return self.executor.get(self._url("/users"), params=params or None)

    def create_user(self, user: User) -> ApiResponse:
        logger.info(f"Creating user: {user.name}")
        return self.executor.post(self._url("/users"), json=user.to_payload(nested_zip_code=True))

    def update_user(self, user_id: Union[int, str], user: User) -> ApiResponse:
        return self.executor.put(self._url(f"/users/{user_id}"), json=user.to_payload(nested_zip_code=True))

    def replace_user(self, update: UserUpdate) -> ApiResponse:
        return self.executor.put(self._url("/users"), json=update.to_payload())

    def partial_update_user(self, user_id: Union[int, str], updates: Mapping[str, Any]) -> ApiResponse:
        return self.executor.patch(self._url(f"/users/{user_id}"), json=dict(updates))

    def delete_user(self, user: User) -> ApiResponse:
        """Delete the user matching the given fields.

        Raises:
            ValidationError: name or sex missing (nothing is sent)
            ResourceNotFoundError: No matching user (API answers 409)
        """
        logger.info(f"Deleting user: {user.name}")
        errors = {}
        if not user.sex:
            errors["sex"] = "Sex is required"
        if not user.name:
            errors["name"] = "Name is required"
        if errors:
            logger.warning("Missing required fields for user deletion")
            raise ValidationError("Name and sex are required fields", errors)

        response = self.executor.delete(self._url("/users"), json=user.to_payload())
        if response.status_code == 409:
            raise ResourceNotFoundError("User not found")
        return response

    def delete_all_users(self) -> None:
        """Delete every user.

        Raises:
            ApiError: Status other than 204
        """
        logger.info("Deleting all users")
        response = self.executor.delete(self._url("/users/all"))
        ensure_status(response, 204, "delete all users")

    def upload_users(self, json_file: Union[str, Path]) -> ApiResponse:
        """Upload a JSON file of users as multipart form data.

        The file is read into memory up front so every retry attempt sends the
        full content; an open file handle would be exhausted after the first try.
        """
        path = Path(json_file)
        files = {"file": (path.name, path.read_bytes(), "application/json")}
        return self.executor.post(self._url("/users/upload"), files=files)

    def send_invalid_method_request(self) -> ApiResponse:
        """PATCH the collection endpoint, which only supports other verbs."""
        logger.info("Sending invalid HTTP method request to /users endpoint")
        return self.executor.patch(self._url("/users"))
