"""
Sync telemetry.

Two sinks: a plain text job log (write_log) for following what workers do,
and SyncLogEntry rows for the problems an operator has to look at.
"""

import os
from datetime import datetime, timedelta

from django.utils import timezone

from mirror.models import SyncLogEntry
from mirror.service.config import get_log_path, get_log_retention_days


def write_log(log_path, message):
    """Append message to log file"""
    if log_path:
        os.makedirs(os.path.dirname(log_path), exist_ok=True)
        with open(log_path, 'a') as f:
            timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
            f.write(f"[{timestamp}] {message}\n")


def job_logger(key):
    """Get a logger callable that prefixes messages with the resource key"""

    def log(message):
        write_log(get_log_path(), f'[{key}] {message}')

    return log


def record_event(severity, message, context=None, owner_id='', category=SyncLogEntry.CATEGORY_MEDIA):
    """
    Record an operator-visible sync event.

    Args:
        severity: SyncLogEntry.SEVERITY_INFO, _WARNING or _ERROR
        message: Human readable description
        context: Optional dict (url, key, mime_type, filename, ...)
        owner_id: Owning document id
        category: Event category

    Returns:
        SyncLogEntry
    """
    entry = SyncLogEntry.objects.create(
        severity=severity,
        message=message,
        context=context or {},
        owner_id=owner_id or '',
        category=category,
    )
    write_log(get_log_path(), f'{severity.upper()}: {message}')
    return entry


def get_unresolved(owner_id=None, severity=None, category=None, limit=None):
    entries = SyncLogEntry.objects.filter(resolved=False)
    if owner_id:
        entries = entries.filter(owner_id=owner_id)
    if severity:
        entries = entries.filter(severity=severity)
    if category:
        entries = entries.filter(category=category)
    if limit:
        entries = entries[:limit]
    return list(entries)


def unresolved_count(severity=None):
    entries = SyncLogEntry.objects.filter(resolved=False)
    if severity:
        entries = entries.filter(severity=severity)
    return entries.count()


def resolve_entry(entry_id, resolved_by=''):
    """Mark one entry resolved. Returns False if it does not exist or is already resolved."""
    updated = SyncLogEntry.objects.filter(pk=entry_id, resolved=False).update(
        resolved=True, resolved_at=timezone.now(), resolved_by=resolved_by
    )
    return updated > 0


def resolve_for_owner(owner_id, resolved_by=''):
    """Mark every open entry of a document resolved. Returns the count."""
    return SyncLogEntry.objects.filter(owner_id=owner_id, resolved=False).update(
        resolved=True, resolved_at=timezone.now(), resolved_by=resolved_by
    )


def purge_resolved(days=None):
    """
    Delete resolved entries older than the retention period.

    Returns:
        int: number of entries deleted
    """
    if days is None:
        days = get_log_retention_days()
    cutoff = timezone.now() - timedelta(days=days)
    deleted, _ = SyncLogEntry.objects.filter(resolved=True, created_at__lt=cutoff).delete()
    return deleted
