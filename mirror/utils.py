import hashlib
from urllib.parse import urlsplit, urlunsplit


def url_base(url):
    """
    Strip query string and fragment from a URL.

    Two signed URLs for the same object differ only in their query string,
    so the base identifies the object itself.
    """
    if not url:
        return ''
    parts = urlsplit(url.strip())
    return urlunsplit((parts.scheme, parts.netloc, parts.path, '', ''))


def resource_key(block_id=None, url=None):
    """
    Build the registry key for a media reference.

    The originating block id is preferred since it survives URL rotation;
    without one the key is derived from the URL base.

    Returns:
        str: block id, or 'url_' + md5 of the URL base
    """
    if block_id:
        return str(block_id)
    if not url:
        raise ValueError('Either block_id or url is required')
    return 'url_' + hashlib.md5(url_base(url).encode('utf-8')).hexdigest()


def format_filesize(bytes_value):
    """Format a byte count as a human readable string"""
    if bytes_value is None:
        return 'Unknown'
    size = float(bytes_value)
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size < 1024.0:
            return f'{size:.1f} {unit}'
        size /= 1024.0
    return f'{size:.1f} TB'
