"""
Client for the upstream subscription conversion service.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from shared.logging import get_logger
from shared.errors import ExternalServiceError


SERVICE_NAME = "subconverter"
DEFAULT_USER_AGENT = "ClashforWindows/0.19.23"


@dataclass(frozen=True)
class UpstreamResponse:
    """Body, status and first value of each header of a conversion response."""

    body: bytes
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)


class SubconverterClient:
    """Issues GET requests against the conversion service.

    A fresh ``httpx.AsyncClient`` is opened per call. Any transport error,
    body read error or non-200 status is raised as ``ExternalServiceError``.
    """

    def __init__(
        self,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.user_agent = user_agent
        self.timeout = timeout
        self._transport = transport
        self.logger = get_logger("convert.subconverter_client")

    async def fetch(self, url: str) -> UpstreamResponse:
        """Fetch ``url`` and return the converted payload."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, headers={"User-Agent": self.user_agent})
        except httpx.HTTPError as exc:
            self.logger.error(
                "Conversion request failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise ExternalServiceError(
                service=SERVICE_NAME,
                message=str(exc) or type(exc).__name__,
                details={"error_type": type(exc).__name__},
            ) from exc

        if response.status_code != 200:
            self.logger.error(
                "Conversion service returned unexpected status",
                status_code=response.status_code,
                response=response.text[:500],
            )
            raise ExternalServiceError(
                service=SERVICE_NAME,
                message=f"Unexpected status {response.status_code}",
                details={"status_code": response.status_code},
            )

        headers: Dict[str, str] = {}
        for name, value in response.headers.multi_items():
            headers.setdefault(name, value)

        self.logger.debug("Conversion payload retrieved", bytes=len(response.content))
        return UpstreamResponse(body=response.content, status_code=response.status_code, headers=headers)
