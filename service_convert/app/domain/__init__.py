"""
Domain helpers for the conversion gateway: request resolution, the
cached response record, and the caching policy.
"""

from .models import CachedResponse, ConversionTarget, EXCLUDED_HEADERS, filter_headers
from .resolver import resolve_target, resolve_subscription_url, build_outbound_url, make_cache_key
from .gateway import ConversionGateway

__all__ = [
    "CachedResponse",
    "ConversionTarget",
    "EXCLUDED_HEADERS",
    "filter_headers",
    "resolve_target",
    "resolve_subscription_url",
    "build_outbound_url",
    "make_cache_key",
    "ConversionGateway",
]
