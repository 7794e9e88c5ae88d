"""
Maps a requested subscription type onto the upstream conversion URL.
"""

import hashlib
from typing import Mapping, Optional
from urllib.parse import quote_plus

from shared.errors import NotFoundError, ValidationError
from .models import ConversionTarget


MIX_SUB_TYPE = "mix"
MIX_DELIMITER = "|"
CACHE_KEY_PREFIX = "convert"


def resolve_subscription_url(
    sub_urls: Mapping[str, str],
    sub_type: Optional[str],
    mix_items: Optional[str] = None,
) -> str:
    """Return the source URL for ``sub_type``.

    For ``mix`` the comma-separated ``mix_items`` are resolved in the order
    given and joined with ``|``. An empty mix list raises ValidationError;
    any name without a configured URL raises NotFoundError.
    """
    if sub_type == MIX_SUB_TYPE:
        if not mix_items:
            raise ValidationError("mix_items is required when sub_type is mix")

        urls = []
        for item in mix_items.split(","):
            name = item.strip()
            url = sub_urls.get(name)
            if not url:
                raise NotFoundError(
                    "Unknown subscription type in mix_items",
                    details={"sub_type": name},
                )
            urls.append(url)
        return MIX_DELIMITER.join(urls)

    url = sub_urls.get(sub_type or "")
    if not url:
        raise NotFoundError("Unknown subscription type", details={"sub_type": sub_type or ""})
    return url


def build_outbound_url(sub_fmt: str, subscription_url: str, sub_type: str) -> str:
    """Append the source URL and target filename to the configured format."""
    return f"{sub_fmt}&url={quote_plus(subscription_url)}&filename=Clash_{sub_type}.yaml"


def make_cache_key(outbound_url: str) -> str:
    digest = hashlib.sha256(outbound_url.encode("utf-8")).hexdigest()
    return f"{CACHE_KEY_PREFIX}:{digest}"


def resolve_target(
    sub_fmt: str,
    sub_urls: Mapping[str, str],
    sub_type: Optional[str],
    mix_items: Optional[str] = None,
) -> ConversionTarget:
    """Resolve a request into its upstream URL and cache key."""
    subscription_url = resolve_subscription_url(sub_urls, sub_type, mix_items)
    outbound_url = build_outbound_url(sub_fmt, subscription_url, sub_type or "")
    return ConversionTarget(
        sub_type=sub_type or "",
        subscription_url=subscription_url,
        outbound_url=outbound_url,
        cache_key=make_cache_key(outbound_url),
    )
