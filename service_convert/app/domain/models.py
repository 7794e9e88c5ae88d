"""
Value types passed between the gateway, the cache and the HTTP layer.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping


# Headers tied to the original transport negotiation; never replayed.
EXCLUDED_HEADERS = frozenset({
    "strict-transport-security",
    "content-encoding",
    "vary",
    "content-length",
    "transfer-encoding",
    "connection",
})


def filter_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Drop the denylisted headers, matching names case-insensitively."""
    return {
        name: value
        for name, value in headers.items()
        if name.lower() not in EXCLUDED_HEADERS
    }


@dataclass(frozen=True)
class CachedResponse:
    """A converted payload as it is stored and replayed.

    ``body`` holds the upstream bytes unchanged; the serialized form carries
    them base64-encoded so the file backend can keep any encoding.
    """

    body: bytes
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-friendly dictionary."""
        return {
            "body": base64.b64encode(self.body).decode("ascii"),
            "status": self.status,
            "headers": dict(self.headers),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> CachedResponse:
        """Rehydrate a response from cached JSON state."""
        if not isinstance(payload, dict):
            raise TypeError("cached response must be an object")
        headers = payload.get("headers") or {}
        if not isinstance(headers, dict):
            raise TypeError("cached headers must be an object")
        return cls(
            body=base64.b64decode(payload["body"], validate=True),
            status=int(payload["status"]),
            headers={str(name): str(value) for name, value in headers.items()},
        )


@dataclass(frozen=True)
class ConversionTarget:
    """Where a request resolves to upstream and the cache key it maps to."""

    sub_type: str
    subscription_url: str
    outbound_url: str
    cache_key: str
