from django import template

from mirror.render import RenderKind, resolve_media
from mirror.utils import format_filesize

register = template.Library()


@register.filter
def filesize(bytes_value):
    """
    Format bytes to human-readable file size.

    Examples:
        1024 -> "1.0 KB"
        1048576 -> "1.0 MB"
    """
    if not bytes_value:
        return '0 B'
    return format_filesize(bytes_value)


@register.simple_tag
def media_src(key, url=''):
    """URL to embed for a media reference, or '' when nothing should render"""
    decision = resolve_media(key, url)
    if decision.kind in (RenderKind.ASSET, RenderKind.PASSTHROUGH, RenderKind.LINK):
        return decision.url
    return ''
