"""
Subscription conversion gateway service.
"""

import sys
from typing import Dict, Optional

from fastapi import Query, Response

from shared.base_service import BaseService
from shared.config import ConverterConfig, load_config
from shared.errors import ConfigurationError
from shared.logging import configure_logging, get_logger

from service_convert.app.adapters import SubconverterClient
from service_convert.app.caching import CacheStore, MemoryCacheStore, build_cache_store
from service_convert.app.domain import CachedResponse, ConversionGateway


class ConvertService(BaseService):
    """Conversion gateway service implementation."""

    def __init__(
        self,
        config: Optional[ConverterConfig] = None,
        *,
        store: Optional[CacheStore] = None,
        client: Optional[SubconverterClient] = None,
    ):
        config = config if config is not None else load_config()
        super().__init__("convert", config)

        self.store = store if store is not None else build_cache_store(
            config,
            encoder=CachedResponse.to_dict,
            decoder=CachedResponse.from_dict,
        )
        self.client = client if client is not None else SubconverterClient(
            user_agent=config.upstream_user_agent,
            timeout=config.upstream_timeout_seconds,
        )
        self.gateway = ConversionGateway(config, self.store, self.client, metrics=self.metrics)

        self.logger.info(
            "Conversion gateway configured",
            cache_backend=config.cache_backend,
            cache_hours=config.cache_hours,
            subscriptions=sorted(config.clash_sub_urls),
        )

        self._setup_convert_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.convert_service = self

    def _setup_convert_routes(self):
        """Set up the conversion endpoint."""

        @self.app.get("/convert")
        async def convert(
            token: Optional[str] = Query(default=None),
            sub_type: Optional[str] = Query(default=None),
            mix_items: Optional[str] = Query(default=None),
        ):
            """Return the converted subscription for ``sub_type``."""
            result = await self.gateway.convert(token, sub_type, mix_items)
            return Response(
                content=result.body,
                status_code=result.status,
                headers=dict(result.headers),
            )

    async def _check_dependencies(self) -> Dict[str, str]:
        """Report the configured cache backend."""
        dependencies = {"cache": self.config.cache_backend}
        if isinstance(self.store, MemoryCacheStore):
            self.metrics.set_gauge("cache_entries", len(self.store), cache_type="memory")
        return dependencies

    async def _on_shutdown(self) -> None:
        self.store.close()


def create_app(config: Optional[ConverterConfig] = None):
    """Create FastAPI application."""
    service = ConvertService(config)
    return service.app


def main() -> None:
    try:
        service = ConvertService()
    except ConfigurationError as exc:
        configure_logging("convert")
        get_logger("convert.main").error(
            "Server config error", message=exc.message, details=exc.details
        )
        sys.exit(1)
    service.run()


if __name__ == "__main__":
    main()
