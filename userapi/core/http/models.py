"""Value objects passed along the transport chain."""
from __future__ import annotations
import json as jsonlib
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from requests.structures import CaseInsensitiveDict


def _freeze(mapping: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class RequestDescriptor:
    """Immutable description of one outbound HTTP request.

    Attributes:
        method: HTTP verb (normalized to upper case)
        url: Absolute URL
        headers: Read-only header mapping
        params: Query string parameters
        body: Raw request body
        json: JSON payload (serialized by the transport)
        files: Multipart parts as accepted by requests
    """

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    params: Optional[Mapping[str, Any]] = None
    body: Optional[Union[str, bytes]] = None
    json: Any = None
    files: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "headers", _freeze(self.headers))
        if self.params is not None:
            object.__setattr__(self, "params", _freeze(self.params))

    def with_header(self, name: str, value: str) -> "RequestDescriptor":
        """Return a copy with ``name`` set to ``value``, replacing any header of the same name in any case."""
        headers = CaseInsensitiveDict(self.headers)
        headers[name] = value
        return replace(self, headers=headers)

    def __repr__(self) -> str:
        # Header values may carry credentials
        return f"RequestDescriptor(method={self.method!r}, url={self.url!r}, headers={sorted(self.headers)!r})"


@dataclass(frozen=True)
class ResponseOutcome:
    """Result of a single attempt."""

    status_code: int
    body: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def retryable(self) -> bool:
        return self.status_code >= 500

    @property
    def terminal(self) -> bool:
        return not self.retryable


@dataclass(frozen=True)
class ApiResponse:
    """Normalized response handed back to callers."""

    status_code: int
    body: str = ""
    headers: Mapping[str, str] = field(default_factory=dict, compare=False)

    @classmethod
    def from_outcome(cls, outcome: ResponseOutcome) -> "ApiResponse":
        return cls(status_code=outcome.status_code, body=outcome.body, headers=outcome.headers)

    def json(self) -> Any:
        """Decode the body as JSON (None for an empty body)."""
        if not self.body:
            return None
        return jsonlib.loads(self.body)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300
