"""
Configuration adapter for media sync settings.

Centralizes access to Django settings so that services, tasks and
management commands read the same values.
"""

from django.conf import settings
from django.utils.module_loading import import_string

from mirror.service.constants import (
    CONTENT_CLASS_FILE,
    CONTENT_CLASS_IMAGE,
    CONVERTIBLE_IMAGE_MIME_TYPES,
    FILE_MIME_TYPES,
    IMAGE_MIME_TYPES,
)


def get_timeout_for_class(content_class):
    """
    Get the per-attempt download timeout in seconds.

    Args:
        content_class: 'image' or 'file'

    Returns:
        int: timeout in seconds
    """
    if content_class == CONTENT_CLASS_IMAGE:
        return settings.MEDIASYNC_IMAGE_TIMEOUT
    return settings.MEDIASYNC_FILE_TIMEOUT


def get_max_bytes_for_class(content_class):
    """
    Get the hard size ceiling for downloaded content.

    Args:
        content_class: 'image' or 'file'

    Returns:
        int: maximum size in bytes
    """
    if content_class == CONTENT_CLASS_IMAGE:
        return settings.MEDIASYNC_IMAGE_MAX_BYTES
    return settings.MEDIASYNC_FILE_MAX_BYTES


def get_allowed_mime_types(content_class):
    """Get MIME types that can be stored without conversion."""
    if content_class == CONTENT_CLASS_IMAGE:
        return list(IMAGE_MIME_TYPES)
    if content_class == CONTENT_CLASS_FILE:
        return list(FILE_MIME_TYPES)
    return []


def get_convertible_mime_types(content_class):
    """Get MIME types that are recognized but need conversion first."""
    if content_class == CONTENT_CLASS_IMAGE:
        return list(CONVERTIBLE_IMAGE_MIME_TYPES)
    return []


def get_download_attempts():
    return settings.MEDIASYNC_DOWNLOAD_ATTEMPTS


def get_temp_dir():
    """Get the directory downloads are streamed into"""
    return settings.MEDIASYNC_TEMP_DIR


def is_image_conversion_enabled():
    return settings.MEDIASYNC_IMAGE_CONVERSION_ENABLED


def get_ephemeral_host_patterns():
    return list(settings.MEDIASYNC_EPHEMERAL_HOST_PATTERNS)


def get_link_only_hosts():
    return list(settings.MEDIASYNC_LINK_ONLY_HOSTS)


def get_external_media_strategy():
    """
    Get the operator default for URLs that are neither ephemeral nor link-only.

    Returns:
        str: 'download' or 'link' (anything unrecognized is treated as 'link')
    """
    strategy = (settings.MEDIASYNC_EXTERNAL_MEDIA_STRATEGY or '').strip().lower()
    if strategy == 'download':
        return 'download'
    return 'link'


def get_expiry_grace_seconds():
    return settings.MEDIASYNC_EXPIRY_GRACE_SECONDS


def get_job_retry_delay():
    """Seconds to wait before the single automatic job retry"""
    return settings.MEDIASYNC_JOB_RETRY_DELAY


def get_job_timeout():
    return settings.MEDIASYNC_JOB_TIMEOUT


def get_log_path():
    return settings.MEDIASYNC_LOG_PATH


def get_log_retention_days():
    return settings.MEDIASYNC_LOG_RETENTION_DAYS


def get_fresh_url_provider():
    """
    Load the callable that re-signs an expired source URL.

    Returns:
        callable(key) -> str | None, or None when no provider is configured
    """
    path = getattr(settings, 'MEDIASYNC_FRESH_URL_PROVIDER', '')
    if not path:
        return None
    return import_string(path)
