"""
Test doubles shared by the app tests.
"""

import tempfile
from contextlib import contextmanager
from pathlib import Path

from django.core.cache import caches
from django.test import TestCase, override_settings
from huey.exceptions import TaskLockedException

from mirror.orchestrator import MediaSyncOrchestrator
from mirror.registry import MediaRegistry
from mirror.service.download import DownloadedFileInfo
from mirror.service.upload import MediaUploader

# Signed on 2025-10-26 for one hour
EXPIRED_URL = (
    'https://prod-files-secure.s3.us-west-2.amazonaws.com/ws/f1/photo.png'
    '?X-Amz-Algorithm=AWS4-HMAC-SHA256&X-Amz-Date=20251026T000000Z'
    '&X-Amz-Expires=3600&X-Amz-Signature=old'
)


def clear_registry_cache():
    caches['media_registry'].clear()


class FakeAssetStore:
    """In-memory asset store"""

    def __init__(self):
        self.assets = {}
        self.counter = 0

    def add(self, asset_id=None, **metadata):
        if asset_id is None:
            self.counter += 1
            asset_id = f'asset{self.counter}'
        self.assets[asset_id] = dict(metadata)
        return asset_id

    def upload(self, path, mime_type, metadata):
        return self.add(mime_type=mime_type, content=Path(path).read_bytes(), **metadata)

    def resolve(self, asset_id):
        if asset_id in self.assets:
            return f'https://assets.test/{asset_id}'
        return None

    def get_metadata(self, asset_id):
        return self.assets.get(asset_id)

    def update_metadata(self, asset_id, metadata):
        if asset_id not in self.assets:
            return False
        self.assets[asset_id].update(metadata)
        return True

    def delete(self, asset_id):
        return self.assets.pop(asset_id, None) is not None


class FakeScheduler:
    """Records scheduled handlers instead of enqueueing them"""

    def __init__(self):
        self.calls = []

    def schedule(self, handler_name, args, run_at=None):
        self.calls.append((handler_name, args, run_at))
        return f'job-{len(self.calls)}'


class FakeDownloader:
    """Writes canned bytes to a temp dir, or raises queued errors"""

    def __init__(self, temp_dir, content=b'\x89PNG fake', raw_mime='image/png', errors=None):
        self.temp_dir = Path(temp_dir)
        self.content = content
        self.raw_mime = raw_mime
        self.errors = list(errors or [])
        self.calls = []

    def __call__(self, url, content_class, logger=None):
        self.calls.append((url, content_class))
        if self.errors:
            raise self.errors.pop(0)
        filename = Path(url.split('?')[0]).name or 'download'
        path = self.temp_dir / f'mediasync_{len(self.calls)}_{filename}'
        path.write_bytes(self.content)
        return DownloadedFileInfo(
            path=path,
            file_size=len(self.content),
            source_url=url,
            filename=filename,
            raw_mime=self.raw_mime,
        )


@contextmanager
def no_lock(key):
    yield


def held_lock(key):
    """Lock factory for a key another worker is already syncing"""
    raise TaskLockedException(f'mediasync-{key} is held')


class PipelineTestCase(TestCase):
    """Registry, uploader and orchestrator wired to in-memory fakes"""

    def setUp(self):
        clear_registry_cache()
        self._temp = tempfile.TemporaryDirectory()
        self.temp_dir = Path(self._temp.name)
        self._settings = override_settings(
            MEDIASYNC_TEMP_DIR=str(self.temp_dir),
            MEDIASYNC_LOG_PATH=str(self.temp_dir / 'logs' / 'mediasync.log'),
        )
        self._settings.enable()

        self.store = FakeAssetStore()
        self.registry = MediaRegistry(asset_store=self.store)
        self.scheduler = FakeScheduler()
        self.downloader = FakeDownloader(self.temp_dir)
        self.logs = []
        self.orchestrator = self.make_orchestrator()

    def tearDown(self):
        self._settings.disable()
        self._temp.cleanup()

    def make_orchestrator(self, **kwargs):
        options = {
            'registry': self.registry,
            'uploader': MediaUploader(store=self.store),
            'scheduler': self.scheduler,
            'lock_factory': no_lock,
            'downloader': self.downloader,
            'logger': self.logs.append,
        }
        options.update(kwargs)
        return MediaSyncOrchestrator(**options)

    def leftover_files(self):
        return [p for p in self.temp_dir.iterdir() if p.is_file()]
