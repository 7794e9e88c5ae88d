"""
Caching policy between the /convert endpoint and the conversion service.
"""

import asyncio
import secrets
import time
from typing import Optional, TYPE_CHECKING

from starlette.concurrency import run_in_threadpool

from shared.config import ConverterConfig
from shared.errors import (
    AuthenticationError,
    CacheUnavailableError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from shared.logging import get_logger
from ..adapters.subconverter_client import SubconverterClient
from ..caching.store import CacheStore
from .models import CachedResponse, ConversionTarget, filter_headers
from .resolver import resolve_target

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class ConversionGateway:
    """Authenticates, resolves, and serves conversions through the cache.

    Concurrent misses on the same key are not coalesced: each one calls the
    conversion service and the last result written wins.
    """

    def __init__(
        self,
        config: ConverterConfig,
        store: CacheStore,
        client: SubconverterClient,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.config = config
        self.store = store
        self.client = client
        self.metrics = metrics
        self.cache_type = config.cache_backend
        self.logger = get_logger("convert.gateway")

    def authenticate(self, token: Optional[str]) -> None:
        """Raise AuthenticationError unless ``token`` matches the configured secret."""
        if token is None or not secrets.compare_digest(
            token.encode("utf-8"), self.config.token.encode("utf-8")
        ):
            raise AuthenticationError("Invalid token")

    def resolve(self, sub_type: Optional[str], mix_items: Optional[str] = None) -> ConversionTarget:
        return resolve_target(self.config.clash_sub_fmt, self.config.clash_sub_urls, sub_type, mix_items)

    async def convert(
        self,
        token: Optional[str],
        sub_type: Optional[str],
        mix_items: Optional[str] = None,
    ) -> CachedResponse:
        """Serve a conversion request, from cache when possible."""
        try:
            self.authenticate(token)
        except AuthenticationError:
            self.logger.warning("Rejected request with invalid token", sub_type=sub_type)
            raise

        try:
            target = self.resolve(sub_type, mix_items)
        except (ValidationError, NotFoundError) as exc:
            self.logger.warning(
                "Could not resolve subscription",
                sub_type=sub_type,
                mix_items=mix_items,
                error=exc.message,
                details=exc.details,
            )
            raise

        cached = await self._lookup(target.cache_key)
        if cached is not None:
            self._count("cache_hits_total", cache_type=self.cache_type)
            self.logger.debug("Cache hit", sub_type=target.sub_type, cache_key=target.cache_key)
            return cached

        self._count("cache_misses_total", cache_type=self.cache_type)
        self.logger.info("Cache miss, calling conversion service", sub_type=target.sub_type)

        # A client disconnect cancels the request task; the fetch and the
        # cache write still run to completion.
        return await asyncio.shield(self._fetch_and_store(target))

    async def _lookup(self, key: str) -> Optional[CachedResponse]:
        try:
            return await run_in_threadpool(self.store.get, key)
        except CacheUnavailableError as exc:
            self._count("cache_errors_total", cache_type=self.cache_type, operation="get")
            self.logger.warning("Cache lookup failed, treating as miss", cache_key=key, error=exc.message)
            return None

    async def _fetch_and_store(self, target: ConversionTarget) -> CachedResponse:
        start = time.perf_counter()
        try:
            upstream = await self.client.fetch(target.outbound_url)
        except ExternalServiceError as exc:
            self._count("upstream_requests_total", outcome="error")
            self.logger.warning(
                "Conversion service unavailable",
                sub_type=target.sub_type,
                error=exc.message,
                details=exc.details,
            )
            raise ExternalServiceError(
                service="subconverter",
                message="Conversion service unavailable",
            ) from exc
        finally:
            if self.metrics:
                self.metrics.observe_histogram(
                    "upstream_request_duration_seconds", time.perf_counter() - start
                )

        self._count("upstream_requests_total", outcome="ok")
        response = CachedResponse(
            body=upstream.body,
            status=upstream.status_code,
            headers=filter_headers(upstream.headers),
        )
        await self._store(target.cache_key, response)
        return response

    async def _store(self, key: str, response: CachedResponse) -> None:
        try:
            await run_in_threadpool(self.store.set, key, response, self.config.cache_ttl_seconds)
        except CacheUnavailableError as exc:
            self._count("cache_errors_total", cache_type=self.cache_type, operation="set")
            self.logger.warning("Cache write failed, serving uncached response", cache_key=key, error=exc.message)

    def _count(self, metric_name: str, **labels) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)
