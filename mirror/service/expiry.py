"""
Signed URL expiry detection.

Signed URLs carry their issuance time and validity window as query
parameters, e.g. X-Amz-Date=20251026T184942Z&X-Amz-Expires=3600.

URLs that went through an HTML layer often come back with escaped
separators (&amp;, &#038;) or a percent-encoded '&'. Those are normalized
before parsing; a URL mangled in some other way parses as having no expiry
parameters and is reported as not expired.
"""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

from mirror.service.config import get_expiry_grace_seconds

# (issued-at parameter, validity-window parameter)
SIGNATURE_PARAMETERS = [
    ('X-Amz-Date', 'X-Amz-Expires'),
    ('X-Goog-Date', 'X-Goog-Expires'),
]

SIGNATURE_DATE_FORMAT = '%Y%m%dT%H%M%SZ'

ESCAPED_SEPARATORS = ['&amp;', '&#038;', '&#38;', '%26']


def normalize_query_separators(url):
    """Undo HTML escaping and percent-encoded '&' between query parameters"""
    if '?' not in url:
        return url
    base, _, query = url.partition('?')
    for escaped in ESCAPED_SEPARATORS:
        query = query.replace(escaped, '&')
    return f'{base}?{query}'


def _query_params(url):
    query = urlparse(normalize_query_separators(url)).query
    if not query:
        return {}
    return {name: values[0] for name, values in parse_qs(query).items() if values}


def parse_signature(url):
    """
    Extract issuance time and validity window from a signed URL.

    Args:
        url: Signed URL

    Returns:
        tuple: (issued_at datetime, validity timedelta) or None when the URL
        carries no recognizable signature parameters
    """
    if not url:
        return None

    params = _query_params(url)
    for date_param, expires_param in SIGNATURE_PARAMETERS:
        if date_param not in params or expires_param not in params:
            continue
        try:
            issued_at = datetime.strptime(params[date_param], SIGNATURE_DATE_FORMAT)
            validity = int(params[expires_param])
        except ValueError:
            return None
        return issued_at.replace(tzinfo=timezone.utc), timedelta(seconds=validity)

    return None


def expires_at(url):
    """Get the moment a signed URL stops working, or None for permanent URLs"""
    signature = parse_signature(url)
    if signature is None:
        return None
    issued_at, validity = signature
    return issued_at + validity


def seconds_remaining(url, now=None):
    """Seconds until expiry (negative once expired), or None for permanent URLs"""
    expiry = expires_at(url)
    if expiry is None:
        return None
    now = now or datetime.now(timezone.utc)
    return (expiry - now).total_seconds()


def is_expired(url, grace_seconds=None, now=None):
    """
    Check whether a signed URL has expired or will within the grace period.

    Args:
        url: Source URL
        grace_seconds: Safety margin before the real expiry (default from settings)
        now: Evaluation time (timezone-aware, default: current UTC time)

    Returns:
        bool: True iff now + grace >= issued_at + validity. URLs without
        signature parameters never expire.
    """
    if grace_seconds is None:
        grace_seconds = get_expiry_grace_seconds()

    expiry = expires_at(url)
    if expiry is None:
        return False

    now = now or datetime.now(timezone.utc)
    return now + timedelta(seconds=grace_seconds) >= expiry


def usable_url(url, key, fresh_url_provider=None, now=None):
    """
    Pick a URL that can still be fetched for a resource.

    Args:
        url: The URL on record, possibly expired
        key: Resource key handed to fresh_url_provider
        fresh_url_provider: Optional callable(key) returning a newly signed
            URL, or None when one cannot be obtained
        now: Evaluation time

    Returns:
        str: url while it is valid, else a valid fresh URL, else None
    """
    if url and not is_expired(url, now=now):
        return url
    if fresh_url_provider is not None:
        fresh = fresh_url_provider(key)
        if fresh and not is_expired(fresh, now=now):
            return fresh
    return None
