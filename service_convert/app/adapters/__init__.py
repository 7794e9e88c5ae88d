"""
Adapters package for the conversion gateway.

Holds the HTTP client for the upstream conversion service. Adapters only
translate transport outcomes into shared errors; caching decisions live in
app.domain.
"""

from .subconverter_client import SubconverterClient, UpstreamResponse

__all__ = [
    "SubconverterClient",
    "UpstreamResponse",
]
