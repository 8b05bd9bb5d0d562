"""
URL classification.

Decides whether an external media URL is downloaded into the asset store,
linked in place, or rejected outright. Pure string checks, no network access.
"""

from enum import Enum
from urllib.parse import urlparse

from mirror.service.config import (
    get_ephemeral_host_patterns,
    get_external_media_strategy,
    get_link_only_hosts,
)


class UrlAction(str, Enum):
    DOWNLOAD = 'download'
    LINK = 'link'
    REJECT = 'reject'


def _host_matches(host, domain):
    return host == domain or host.endswith('.' + domain)


def is_ephemeral_url(url):
    """Check if URL points at a signed host whose links expire"""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    # Patterns may name a bucket in the path, never the query string
    location = parsed.netloc.lower() + parsed.path
    return any(pattern in location for pattern in get_ephemeral_host_patterns())


def is_link_only_url(url):
    """Check if URL belongs to a third-party host we may only link to"""
    host = (urlparse(url).hostname or '').lower()
    if not host:
        return False
    return any(_host_matches(host, domain.lower()) for domain in get_link_only_hosts())


def classify(url):
    """
    Classify a source URL.

    Rules, in order:
    1. Malformed URLs or non-http(s) schemes are rejected
    2. Ephemeral signed hosts must be downloaded (they expire)
    3. Link-only hosts are never fetched
    4. Everything else follows MEDIASYNC_EXTERNAL_MEDIA_STRATEGY

    Args:
        url: The source URL

    Returns:
        UrlAction
    """
    if not url or not isinstance(url, str):
        return UrlAction.REJECT

    url = url.strip()
    try:
        parsed = urlparse(url)
    except ValueError:
        return UrlAction.REJECT

    if parsed.scheme.lower() not in ('http', 'https') or not parsed.hostname:
        return UrlAction.REJECT

    if is_ephemeral_url(url):
        return UrlAction.DOWNLOAD

    if is_link_only_url(url):
        return UrlAction.LINK

    if get_external_media_strategy() == 'download':
        return UrlAction.DOWNLOAD
    return UrlAction.LINK


def should_download(url):
    return classify(url) == UrlAction.DOWNLOAD
