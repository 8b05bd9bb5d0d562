"""
Exceptions raised by the media sync pipeline.

ValidationError is fatal and never retried. TransientError is retried
locally by the downloader; once attempts run out it surfaces as a
DownloadError chained to the last cause.
"""


class MediaSyncError(Exception):
    """Base class for media sync failures."""


class ValidationError(MediaSyncError):
    """Malformed or disallowed URL, blocked host, bad size or disallowed MIME type."""


class TransientError(MediaSyncError):
    """Network timeout, connection error, non-200 response or empty body."""


class DownloadError(MediaSyncError):
    """Download failed after all retry attempts."""

    def __init__(self, message, attempts=0):
        super().__init__(message)
        self.attempts = attempts


class ConversionError(MediaSyncError):
    """A recognized image format could not be converted."""


class JobFailure(MediaSyncError):
    """A background job failed and will not be retried again."""

    def __init__(self, message, job=None):
        super().__init__(message)
        self.job = job
