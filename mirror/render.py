"""
Render-time resolution of media references.

Given a resource key and the URL the content currently carries, decide what
a page should show: the stored asset, the (still valid) source URL, a link,
a notice for privileged viewers, or nothing.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from mirror.models import MediaResource
from mirror.registry import MediaRegistry
from mirror.service.config import get_fresh_url_provider
from mirror.service.expiry import usable_url


class RenderKind(str, Enum):
    ASSET = 'asset'
    PASSTHROUGH = 'passthrough'
    LINK = 'link'
    NOTICE = 'notice'
    EMPTY = 'empty'


@dataclass
class RenderDecision:
    kind: RenderKind
    url: Optional[str] = None
    message: str = ''
    # The stored asset vanished and the key should be downloaded again
    needs_refetch: bool = False


def _notice(message, privileged):
    if privileged:
        return RenderDecision(kind=RenderKind.NOTICE, message=message)
    return RenderDecision(kind=RenderKind.EMPTY)


def resolve_media(key, url='', registry=None, fresh_url_provider=None, privileged=False, now=None):
    """
    Decide how to render a media reference.

    Args:
        key: Resource key (block id or url_<md5>)
        url: URL currently embedded in the content, may be expired
        registry: Optional MediaRegistry
        fresh_url_provider: Optional callable(key) returning a newly signed
            URL, or None when one cannot be obtained
        privileged: Whether the viewer may see operator notices
        now: Evaluation time for expiry checks

    Returns:
        RenderDecision
    """
    if not key:
        return _notice('Media reference has no key', privileged)

    registry = registry or MediaRegistry()
    fresh_url_provider = fresh_url_provider or get_fresh_url_provider()
    status = registry.get_status(key)

    if status in (MediaResource.STATUS_EXTERNAL, MediaResource.STATUS_UNSUPPORTED):
        link = usable_url(url or registry.get_source_url(key), key, fresh_url_provider, now)
        if link:
            return RenderDecision(kind=RenderKind.LINK, url=link)
        return _notice(f'Source link for {key} has expired', privileged)

    needs_refetch = False
    if status == MediaResource.STATUS_UPLOADED:
        asset_url = registry.get_media_url(key)
        if asset_url:
            return RenderDecision(kind=RenderKind.ASSET, url=asset_url)
        needs_refetch = True

    if status == MediaResource.STATUS_ERROR:
        return _notice(f'Media {key} could not be synced', privileged)

    source = usable_url(url, key, fresh_url_provider, now)
    if source:
        return RenderDecision(kind=RenderKind.PASSTHROUGH, url=source, needs_refetch=needs_refetch)

    decision = _notice(f'Media {key} is not available yet', privileged)
    decision.needs_refetch = needs_refetch
    return decision
