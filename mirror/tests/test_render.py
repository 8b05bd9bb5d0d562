"""
Tests for mirror/render.py
"""

from datetime import datetime, timedelta, timezone

from django.test import TestCase

from mirror.models import MediaResource
from mirror.registry import MediaRegistry
from mirror.render import RenderKind, resolve_media
from mirror.tests.helpers import FakeAssetStore, clear_registry_cache

ISSUED_AT = datetime(2025, 10, 26, 0, 0, 0, tzinfo=timezone.utc)
SIGNED_URL = (
    'https://prod-files-secure.s3.us-west-2.amazonaws.com/ws/f1/photo.png'
    '?X-Amz-Algorithm=AWS4-HMAC-SHA256&X-Amz-Date=20251026T000000Z'
    '&X-Amz-Expires=3600&X-Amz-Signature=abc'
)
FRESH_URL = (
    'https://prod-files-secure.s3.us-west-2.amazonaws.com/ws/f1/photo.png'
    '?X-Amz-Algorithm=AWS4-HMAC-SHA256&X-Amz-Date=20251026T005500Z'
    '&X-Amz-Expires=3600&X-Amz-Signature=def'
)
EARLY = ISSUED_AT + timedelta(minutes=10)
LATE = ISSUED_AT + timedelta(minutes=58)


class ResolveMediaTest(TestCase):
    """Tests for resolve_media"""

    def setUp(self):
        clear_registry_cache()
        self.store = FakeAssetStore()
        self.registry = MediaRegistry(asset_store=self.store)

    def resolve(self, key, url='', **kwargs):
        kwargs.setdefault('registry', self.registry)
        kwargs.setdefault('now', LATE)
        return resolve_media(key, url, **kwargs)

    def test_stored_asset(self):
        """A stored asset wins over the source URL"""
        asset_id = self.store.add()
        self.registry.register('block-1', asset_id, SIGNED_URL)

        decision = self.resolve('block-1', SIGNED_URL)

        self.assertEqual(decision.kind, RenderKind.ASSET)
        self.assertEqual(decision.url, f'https://assets.test/{asset_id}')

    def test_pending_with_valid_source(self):
        """Not synced yet, the signed URL is still good"""
        decision = self.resolve('block-1', SIGNED_URL, now=EARLY)
        self.assertEqual(decision.kind, RenderKind.PASSTHROUGH)
        self.assertEqual(decision.url, SIGNED_URL)
        self.assertFalse(decision.needs_refetch)

    def test_pending_with_expired_source(self):
        """An expired URL is never rendered"""
        self.assertEqual(self.resolve('block-1', SIGNED_URL).kind, RenderKind.EMPTY)

        decision = self.resolve('block-1', SIGNED_URL, privileged=True)
        self.assertEqual(decision.kind, RenderKind.NOTICE)
        self.assertIn('block-1', decision.message)

    def test_expired_source_with_fresh_url(self):
        """A freshly signed URL replaces an expired one"""
        requested = []

        def provider(key):
            requested.append(key)
            return FRESH_URL

        decision = self.resolve('block-1', SIGNED_URL, fresh_url_provider=provider)

        self.assertEqual(decision.kind, RenderKind.PASSTHROUGH)
        self.assertEqual(decision.url, FRESH_URL)
        self.assertEqual(requested, ['block-1'])

    def test_provider_without_url(self):
        decision = self.resolve('block-1', SIGNED_URL, fresh_url_provider=lambda key: None)
        self.assertEqual(decision.kind, RenderKind.EMPTY)

    def test_missing_asset_falls_back_and_flags_refetch(self):
        """A vanished asset renders the source and asks for a re-download"""
        asset_id = self.store.add()
        self.registry.register('block-1', asset_id, SIGNED_URL)
        self.store.delete(asset_id)

        decision = self.resolve('block-1', SIGNED_URL, now=EARLY)
        self.assertEqual(decision.kind, RenderKind.PASSTHROUGH)
        self.assertTrue(decision.needs_refetch)

        decision = self.resolve('block-1', SIGNED_URL)
        self.assertEqual(decision.kind, RenderKind.EMPTY)
        self.assertTrue(decision.needs_refetch)

    def test_external_link(self):
        """Linked media render as links to their source"""
        url = 'https://images.unsplash.com/photo-123'
        self.registry.register('block-1', None, url, status=MediaResource.STATUS_EXTERNAL)

        decision = self.resolve('block-1')

        self.assertEqual(decision.kind, RenderKind.LINK)
        self.assertEqual(decision.url, url)

    def test_unsupported_with_expired_link(self):
        self.registry.register('block-1', None, SIGNED_URL, status=MediaResource.STATUS_UNSUPPORTED)

        self.assertEqual(self.resolve('block-1', now=EARLY).kind, RenderKind.LINK)
        self.assertEqual(self.resolve('block-1', privileged=True).kind, RenderKind.NOTICE)

    def test_failed_key(self):
        self.registry.record_error('block-1', 'boom', source_url=SIGNED_URL)
        self.assertEqual(self.resolve('block-1', SIGNED_URL, now=EARLY).kind, RenderKind.EMPTY)
        self.assertEqual(self.resolve('block-1', SIGNED_URL, privileged=True).kind, RenderKind.NOTICE)

    def test_unsigned_url_never_expires(self):
        decision = self.resolve('block-1', 'https://example.com/picture.png')
        self.assertEqual(decision.kind, RenderKind.PASSTHROUGH)

    def test_no_key(self):
        self.assertEqual(self.resolve('', SIGNED_URL).kind, RenderKind.EMPTY)
        self.assertEqual(self.resolve('', SIGNED_URL, privileged=True).kind, RenderKind.NOTICE)
