"""
High-level operations used by management commands, the admin and callers
embedding the sync pipeline.

These wrap URL classification, the registry and the job orchestrator so a
media reference can be synced with one call.
"""

from dataclasses import dataclass
from typing import Optional

from mirror.models import MediaResource, SyncLogEntry
from mirror.orchestrator import Job, MediaSyncOrchestrator
from mirror.registry import MediaRegistry
from mirror.service.constants import CONTENT_CLASS_IMAGE
from mirror.service.strategy import UrlAction, classify
from mirror.telemetry import record_event
from mirror.utils import resource_key

ACTION_REJECTED = 'rejected'
ACTION_LINKED = 'linked'
ACTION_CACHED = 'cached'
ACTION_SCHEDULED = 'scheduled'
ACTION_REFETCHING = 'refetching'
ACTION_FAILED = 'failed'
ACTION_SYNCED = 'synced'
ACTION_EXPIRED = 'expired'


@dataclass
class SyncOutcome:
    """What sync_media_reference did with a reference"""

    key: str
    action: str
    status: Optional[str] = None
    job_id: Optional[str] = None


def _get_orchestrator(orchestrator=None, logger=None):
    if orchestrator is not None:
        return orchestrator
    return MediaSyncOrchestrator(logger=logger)


def sync_media_reference(
    url,
    block_id=None,
    owner_id='',
    content_class=CONTENT_CLASS_IMAGE,
    metadata=None,
    wait=False,
    orchestrator=None,
    logger=None,
):
    """
    Sync one external media reference.

    Args:
        url: Source URL (possibly signed and expiring)
        block_id: Id of the originating content block, preferred as the key
        owner_id: Owning document id
        content_class: 'image' or 'file'
        metadata: Optional dict with title, caption, alt_text, description
        wait: If True, run the job in this process instead of enqueueing it
        orchestrator: Optional MediaSyncOrchestrator
        logger: Optional callable(message) for logging

    Returns:
        SyncOutcome

    Example:
        >>> outcome = sync_media_reference(url, block_id='a1b2c3', owner_id='42')
        >>> outcome.action
        'scheduled'
    """

    def log(message):
        if logger:
            logger(message)

    orchestrator = _get_orchestrator(orchestrator, logger)
    registry = orchestrator.registry
    key = resource_key(block_id=block_id, url=url)
    action = classify(url)

    if action == UrlAction.REJECT:
        log(f'Rejected URL for {key}: {url!r}')
        record_event(
            SyncLogEntry.SEVERITY_WARNING,
            f'Rejected media URL for {key}',
            context={'key': key, 'url': url},
            owner_id=owner_id,
        )
        return SyncOutcome(key=key, action=ACTION_REJECTED)

    if action == UrlAction.LINK:
        if not registry.register(
            key,
            None,
            source_url=url,
            status=MediaResource.STATUS_EXTERNAL,
            owner_id=owner_id,
            content_class=content_class,
        ):
            status = registry.get_status(key)
            if status != MediaResource.STATUS_EXTERNAL:
                # Stored or in-flight media is never downgraded to a link
                log(f'{key} is already {status}, not linking')
                return SyncOutcome(key=key, action=ACTION_CACHED, status=status)
            registry.update(key, None, url, MediaResource.STATUS_EXTERNAL)
        log(f'Linking {key} in place: {url}')
        return SyncOutcome(key=key, action=ACTION_LINKED, status=MediaResource.STATUS_EXTERNAL)

    if registry.exists(key):
        status = registry.get_status(key)
        if status == MediaResource.STATUS_ERROR:
            log(f'{key} failed previously, waiting for an operator retry')
            return SyncOutcome(key=key, action=ACTION_FAILED, status=status)

        asset_missing = status == MediaResource.STATUS_UPLOADED and registry.get_media_url(key) is None
        if asset_missing or registry.needs_reupload(key, url):
            fetch_url = orchestrator.source_url_for(key, url)
            if fetch_url is None:
                orchestrator.report_expired(key, url, owner_id)
                return SyncOutcome(key=key, action=ACTION_EXPIRED, status=status)
            log(f'Re-downloading {key}: ' + ('asset missing' if asset_missing else 'source replaced'))
            if wait:
                registry.mark_pending(key, fetch_url)
                job = Job(key, fetch_url, owner_id, content_class, dict(metadata or {}), replace=True)
                status = orchestrator.run(job)
                return SyncOutcome(key=key, action=ACTION_SYNCED, status=status)
            job_id = orchestrator.refetch(key, fetch_url, owner_id, content_class, metadata)
            return SyncOutcome(key=key, action=ACTION_REFETCHING, status=MediaResource.STATUS_PENDING, job_id=job_id)

        return SyncOutcome(key=key, action=ACTION_CACHED, status=status)

    fetch_url = orchestrator.source_url_for(key, url)
    if fetch_url is None:
        orchestrator.report_expired(key, url, owner_id)
        return SyncOutcome(key=key, action=ACTION_EXPIRED)

    if wait:
        job = Job(key, fetch_url, owner_id, content_class, dict(metadata or {}))
        status = orchestrator.run(job)
        return SyncOutcome(key=key, action=ACTION_SYNCED, status=status)

    job_id = orchestrator.schedule(key, fetch_url, owner_id, content_class, metadata)
    log(f'Scheduled {key}')
    return SyncOutcome(key=key, action=ACTION_SCHEDULED, job_id=job_id)


def sync_media_references(references, owner_id='', wait=False, orchestrator=None, logger=None):
    """
    Sync every media reference of a document.

    Args:
        references: Iterable of dicts with url and optional block_id,
            content_class and metadata
        owner_id: Owning document id

    Returns:
        dict: resource key -> SyncOutcome
    """
    orchestrator = _get_orchestrator(orchestrator, logger)
    outcomes = {}
    for reference in references:
        outcome = sync_media_reference(
            reference['url'],
            block_id=reference.get('block_id'),
            owner_id=owner_id,
            content_class=reference.get('content_class', CONTENT_CLASS_IMAGE),
            metadata=reference.get('metadata'),
            wait=wait,
            orchestrator=orchestrator,
            logger=logger,
        )
        outcomes[outcome.key] = outcome
    return outcomes


def retry_resource(key, url=None, wait=False, orchestrator=None, logger=None):
    """
    Operator retry of a key, typically one left in 'error' status.

    A failed key without an asset is cleared and scheduled from scratch;
    anything else is refetched in place. When the URL has expired and no
    fresh one can be obtained the row is left as it is.

    Returns:
        SyncOutcome

    Raises:
        MediaResource.DoesNotExist: unknown key
        ValueError: no URL given and none recorded
    """
    orchestrator = _get_orchestrator(orchestrator, logger)
    registry = orchestrator.registry
    row = registry.get(key)
    if row is None:
        raise MediaResource.DoesNotExist(f'No registry entry for {key}')

    url = url or row.source_url
    if not url:
        raise ValueError(f'No source URL recorded for {key}')

    fetch_url = orchestrator.source_url_for(key, url)
    if fetch_url is None:
        orchestrator.report_expired(key, url, row.owner_id)
        return SyncOutcome(key=key, action=ACTION_EXPIRED, status=row.status)

    if row.status == MediaResource.STATUS_ERROR and not row.asset_id:
        registry.delete(key)
        replace = False
    else:
        registry.mark_pending(key, fetch_url)
        replace = True

    job = Job(key, fetch_url, row.owner_id, row.content_class, replace=replace)
    if wait:
        status = orchestrator.run(job)
        return SyncOutcome(key=key, action=ACTION_SYNCED, status=status)
    job_id = orchestrator.schedule(key, fetch_url, row.owner_id, row.content_class, replace=replace)
    return SyncOutcome(key=key, action=ACTION_SCHEDULED, status=MediaResource.STATUS_PENDING, job_id=job_id)


def cleanup_orphaned(dry_run=False, registry=None, logger=None):
    """Remove registry entries whose asset is gone. Returns the count."""
    registry = registry or MediaRegistry(logger=logger)
    return registry.cleanup_orphaned(dry_run=dry_run)
