"""
Background job orchestration.

A job downloads one media reference, normalizes it, uploads it and records
the result in the registry. Jobs run on the huey queue; a failed job is
re-scheduled exactly once, after which the failure is recorded for an
operator. A job that finds its key locked by another worker is deferred,
not failed.
"""

import time
from dataclasses import asdict, dataclass, field, replace
from datetime import timedelta
from enum import Enum

from django.utils import timezone
from huey.contrib.djhuey import HUEY
from huey.exceptions import TaskLockedException

from mirror.errors import JobFailure, ValidationError
from mirror.models import MediaResource, SyncLogEntry
from mirror.registry import MediaRegistry
from mirror.service.config import get_fresh_url_provider, get_job_retry_delay, get_job_timeout
from mirror.service.constants import CONTENT_CLASS_IMAGE
from mirror.service.download import download
from mirror.service.expiry import usable_url
from mirror.service.process import UnsupportedMedia, detect_mime, normalize
from mirror.service.upload import MediaUploader
from mirror.telemetry import job_logger, record_event

# First run plus one automatic retry
MAX_JOB_ATTEMPTS = 2

# How often a job waits for a key held by another worker before giving up
MAX_LOCK_DEFERRALS = 10

PROCESS_HANDLER = 'process_resource'


class JobState(str, Enum):
    PENDING = 'pending'
    RUNNING = 'running'
    COMPLETED = 'completed'
    FAILED = 'failed'


class JobOutcome(str, Enum):
    RETRIED = 'retried'
    TERMINAL = 'terminal'
    EXPIRED = 'expired'
    DEFERRED = 'deferred'
    ABANDONED = 'abandoned'


@dataclass
class Job:
    """One media sync unit of work, serialized into the task queue as a dict"""

    key: str
    url: str
    owner_id: str = ''
    content_class: str = CONTENT_CLASS_IMAGE
    metadata: dict = field(default_factory=dict)
    attempt: int = 1
    replace: bool = False
    deferrals: int = 0
    state: JobState = JobState.PENDING

    def to_dict(self):
        data = asdict(self)
        data['state'] = self.state.value
        return data

    @classmethod
    def from_dict(cls, data):
        data = dict(data)
        data['state'] = JobState(data.get('state', JobState.PENDING))
        return cls(**data)

    def next_attempt(self):
        return replace(self, attempt=self.attempt + 1, state=JobState.PENDING, metadata=dict(self.metadata))

    def deferred(self):
        """Same attempt, queued again because the key was locked"""
        return replace(self, deferrals=self.deferrals + 1, state=JobState.PENDING, metadata=dict(self.metadata))


def huey_lock(key):
    """Per-key lock shared by every huey worker"""
    return HUEY.lock_task(f'mediasync-{key}')


class HueyJobScheduler:
    """Schedules named handlers on the huey queue"""

    def _get_handler(self, handler_name):
        from mirror import tasks

        return getattr(tasks, handler_name)

    def schedule(self, handler_name, args, run_at=None):
        """
        Enqueue a handler.

        Args:
            handler_name: Name of a task in mirror.tasks
            args: Positional arguments for the task
            run_at: Optional aware datetime; None or a past time runs as soon as possible

        Returns:
            str: task id, or None when the queue returns no result handle
        """
        task = self._get_handler(handler_name)
        if run_at is None or run_at <= timezone.now():
            result = task(*args)
        else:
            result = task.schedule(args=tuple(args), eta=run_at)
        return getattr(result, 'id', None)


class MediaSyncOrchestrator:
    """
    Runs media sync jobs.

    Collaborators are injectable so the pipeline can run against fakes:
    downloader(url, content_class, logger=) -> DownloadedFileInfo,
    mime_detector(path, header_mime) -> str,
    normalizer(path, mime, content_class, logger=) -> NormalizedMedia | UnsupportedMedia,
    lock_factory(key) -> context manager raising TaskLockedException when held,
    fresh_url_provider(key) -> newly signed URL or None,
    clock() -> monotonic seconds, used for the job deadline.
    """

    def __init__(
        self,
        registry=None,
        uploader=None,
        scheduler=None,
        lock_factory=huey_lock,
        downloader=download,
        mime_detector=detect_mime,
        normalizer=normalize,
        logger=None,
        fresh_url_provider=None,
        clock=time.monotonic,
    ):
        self.registry = registry if registry is not None else MediaRegistry()
        self.uploader = uploader if uploader is not None else MediaUploader()
        self.scheduler = scheduler if scheduler is not None else HueyJobScheduler()
        self.lock_factory = lock_factory
        self.downloader = downloader
        self.mime_detector = mime_detector
        self.normalizer = normalizer
        self.logger = logger
        self.fresh_url_provider = fresh_url_provider if fresh_url_provider is not None else get_fresh_url_provider()
        self.clock = clock

    def _logger_for(self, job):
        return self.logger or job_logger(job.key)

    def source_url_for(self, key, url):
        """
        Get a URL that can still be downloaded for a key.

        Returns:
            str: url itself while it is valid, a freshly signed URL when the
            provider has one, or None when the source has expired for good
        """
        return usable_url(url, key, self.fresh_url_provider)

    def report_expired(self, key, url, owner_id=''):
        """Record that a key could not be fetched because its URL expired"""
        record_event(
            SyncLogEntry.SEVERITY_WARNING,
            f'Source URL for {key} has expired, nothing was fetched',
            context={'key': key, 'url': url},
            owner_id=owner_id or '',
        )
        (self.logger or job_logger(key))(f'Source URL expired, not fetching {url}')

    def schedule(self, key, url, owner_id='', content_class=CONTENT_CLASS_IMAGE, metadata=None, replace=False):
        """
        Enqueue a sync job unless the key is already registered.

        An expired url is swapped for a fresh one; without one nothing is
        scheduled and a warning is recorded.

        Returns:
            str: job id, or None if nothing was scheduled
        """
        if not replace and self.registry.exists(key):
            return None

        fetch_url = self.source_url_for(key, url)
        if fetch_url is None:
            self.report_expired(key, url, owner_id)
            return None

        job = Job(
            key=key,
            url=fetch_url,
            owner_id=owner_id or '',
            content_class=content_class,
            metadata=dict(metadata or {}),
            replace=replace,
        )
        job_id = self.scheduler.schedule(PROCESS_HANDLER, [job.to_dict()])
        self._logger_for(job)(f'Scheduled sync job {job_id} for {fetch_url}')
        return job_id

    def refetch(self, key, url, owner_id='', content_class=CONTENT_CLASS_IMAGE, metadata=None):
        """
        Mark a registered key pending and schedule a replacing download.

        The row is left untouched when url has expired and no fresh one is
        available.
        """
        fetch_url = self.source_url_for(key, url)
        if fetch_url is None:
            self.report_expired(key, url, owner_id)
            return None
        self.registry.mark_pending(key, fetch_url)
        return self.schedule(key, fetch_url, owner_id, content_class, metadata, replace=True)

    def execute(self, job):
        """
        Run a job: download, normalize, upload, register.

        Returns:
            str: registry status for the key once the job is done

        Raises:
            TaskLockedException: another worker is syncing the same key
            MediaSyncError and friends; the caller decides about retries
        """
        log = self._logger_for(job)
        job.state = JobState.RUNNING
        try:
            with self.lock_factory(job.key):
                status = self._execute_locked(job, log)
        except BaseException:
            job.state = JobState.FAILED
            raise
        job.state = JobState.COMPLETED
        return status

    def _check_deadline(self, job, started):
        timeout = get_job_timeout()
        elapsed = self.clock() - started
        if elapsed > timeout:
            raise JobFailure(f'Job for {job.key} ran {elapsed:.0f}s, over the {timeout}s limit', job=job)

    def _execute_locked(self, job, log):
        if not job.replace and self.registry.exists(job.key):
            log('Already registered, skipping')
            return self.registry.get_status(job.key)

        started = self.clock()
        downloaded = self.downloader(job.url, job.content_class, logger=log)
        paths = [downloaded.path]
        try:
            self._check_deadline(job, started)
            mime_type = self.mime_detector(downloaded.path, downloaded.raw_mime)
            log(f'Detected MIME type: {mime_type}')

            result = self.normalizer(downloaded.path, mime_type, job.content_class, logger=log)
            if isinstance(result, UnsupportedMedia):
                if not self._record(job, None, MediaResource.STATUS_UNSUPPORTED, result.original_mime, log):
                    return self.registry.get_status(job.key)
                record_event(
                    SyncLogEntry.SEVERITY_WARNING,
                    f'Unsupported media for {job.key}, linking to source: {result.reason}',
                    context={
                        'key': job.key,
                        'url': job.url,
                        'mime_type': result.original_mime,
                        'filename': downloaded.filename,
                    },
                    owner_id=job.owner_id,
                )
                return MediaResource.STATUS_UNSUPPORTED

            paths.append(result.path)
            self._check_deadline(job, started)
            metadata = {'filename': downloaded.filename, **job.metadata}
            if result.was_converted:
                metadata['filename'] = result.path.name
            asset_id = self.uploader.upload(
                result.path, metadata, owner_id=job.owner_id, mime_type=result.mime_type
            )
            if not self._record(job, asset_id, MediaResource.STATUS_UPLOADED, result.mime_type, log):
                return self.registry.get_status(job.key)
            return MediaResource.STATUS_UPLOADED
        finally:
            for path in paths:
                path.unlink(missing_ok=True)

    def _record(self, job, asset_id, status, mime_type, log):
        registered = self.registry.register(
            job.key,
            asset_id,
            source_url=job.url,
            status=status,
            mime_type=mime_type,
            owner_id=job.owner_id,
            content_class=job.content_class,
        )
        if registered:
            log(f'Registered as {status}' + (f' (asset {asset_id})' if asset_id else ''))
            return True

        if job.replace:
            previous_asset = self.registry.find(job.key)
            updated = self.registry.update(job.key, asset_id, job.url, status, mime_type=mime_type)
            if updated:
                log(f'Replaced registry entry, now {status}')
                if previous_asset and previous_asset != asset_id and not self.registry.find_by_asset(previous_asset):
                    self.uploader.discard(previous_asset)
                return True

        # Another job registered the key first
        if asset_id:
            self.uploader.discard(asset_id)
        log('Key was registered concurrently, duplicate discarded')
        return False

    def handle_success(self, job):
        job.state = JobState.COMPLETED
        self._logger_for(job)(f'Sync job completed on attempt {job.attempt}')

    def handle_locked(self, job):
        """
        React to a job that found its key locked by another worker.

        The same attempt is queued again after MEDIASYNC_JOB_RETRY_DELAY.
        Nothing is written to the registry: the worker holding the lock owns
        the outcome for the key.

        Returns:
            JobOutcome: DEFERRED, or ABANDONED after MAX_LOCK_DEFERRALS
        """
        log = self._logger_for(job)
        job.state = JobState.PENDING
        if job.deferrals >= MAX_LOCK_DEFERRALS:
            log(f'Key still locked after {job.deferrals} deferrals, giving up')
            record_event(
                SyncLogEntry.SEVERITY_WARNING,
                f'Media sync for {job.key} gave up waiting for another worker',
                context={'key': job.key, 'url': job.url, 'deferrals': job.deferrals},
                owner_id=job.owner_id,
            )
            return JobOutcome.ABANDONED

        run_at = timezone.now() + timedelta(seconds=get_job_retry_delay())
        self.scheduler.schedule(PROCESS_HANDLER, [job.deferred().to_dict()], run_at=run_at)
        log(f'Key is locked by another worker, deferred to {run_at.isoformat()}')
        return JobOutcome.DEFERRED

    def handle_failure(self, job, exc):
        """
        React to a failed job.

        Validation failures are final. Anything else is re-scheduled once
        after MEDIASYNC_JOB_RETRY_DELAY, with a fresh URL if the old one
        expired in the meantime. A failing retry is terminal and gets
        recorded on the registry row and in the sync log.

        Returns:
            JobOutcome
        """
        log = self._logger_for(job)
        job.state = JobState.FAILED
        message = f'{type(exc).__name__}: {exc}'

        if not isinstance(exc, ValidationError) and job.attempt < MAX_JOB_ATTEMPTS:
            retry_url = self.source_url_for(job.key, job.url)
            if retry_url is None:
                log(f'Attempt {job.attempt} failed ({message}) and the source URL has expired')
                self.report_expired(job.key, job.url, job.owner_id)
                return JobOutcome.EXPIRED

            retry = job.next_attempt()
            retry.url = retry_url
            run_at = timezone.now() + timedelta(seconds=get_job_retry_delay())
            self.scheduler.schedule(PROCESS_HANDLER, [retry.to_dict()], run_at=run_at)
            log(f'Attempt {job.attempt} failed ({message}), retrying at {run_at.isoformat()}')
            return JobOutcome.RETRIED

        self._record_error(job, message, log)
        record_event(
            SyncLogEntry.SEVERITY_ERROR,
            f'Media sync failed for {job.key} after {job.attempt} attempt(s): {message}',
            context={
                'key': job.key,
                'url': job.url,
                'content_class': job.content_class,
                'attempt': job.attempt,
            },
            owner_id=job.owner_id,
        )
        return JobOutcome.TERMINAL

    def _record_error(self, job, message, log):
        try:
            with self.lock_factory(job.key):
                self.registry.record_error(
                    job.key,
                    message,
                    source_url=job.url,
                    owner_id=job.owner_id,
                    content_class=job.content_class,
                )
        except TaskLockedException:
            # The lock holder decides what the row ends up as
            log('Another worker is syncing this key, failure not recorded on the registry')

    def run(self, job):
        """
        Execute a job in the current process with the same retry handling as the queue.

        Returns:
            str: registry status for the key; a locked key is deferred and
            its current status returned
        """
        try:
            status = self.execute(job)
        except TaskLockedException:
            self.handle_locked(job)
            return self.registry.get_status(job.key)
        except Exception as exc:
            self.handle_failure(job, exc)
            raise
        self.handle_success(job)
        return status
