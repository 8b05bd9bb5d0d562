"""
Tests for mirror/registry.py
"""

from django.test import TestCase

from mirror.models import MediaResource
from mirror.registry import MediaRegistry
from mirror.tests.helpers import FakeAssetStore, clear_registry_cache
from mirror.utils import resource_key, url_base

URL_V1 = 'https://prod-files-secure.s3.us-west-2.amazonaws.com/ws/f1/photo.png?X-Amz-Signature=one'
URL_V1_RESIGNED = 'https://prod-files-secure.s3.us-west-2.amazonaws.com/ws/f1/photo.png?X-Amz-Signature=two'
URL_V2 = 'https://prod-files-secure.s3.us-west-2.amazonaws.com/ws/f2/photo.png?X-Amz-Signature=three'


class RegistryTestCase(TestCase):
    def setUp(self):
        clear_registry_cache()
        self.store = FakeAssetStore()
        self.registry = MediaRegistry(asset_store=self.store)


class RegisterTest(RegistryTestCase):
    """Tests for register/update/exists"""

    def test_register_and_find(self):
        """Test a registered key resolves to its asset"""
        asset_id = self.store.add()
        self.assertTrue(self.registry.register('block-1', asset_id, URL_V1))

        self.assertTrue(self.registry.exists('block-1'))
        self.assertEqual(self.registry.find('block-1'), asset_id)
        self.assertEqual(self.registry.get_status('block-1'), MediaResource.STATUS_UPLOADED)
        self.assertEqual(self.registry.get_source_url('block-1'), URL_V1)
        self.assertEqual(self.registry.get_media_url('block-1'), f'https://assets.test/{asset_id}')

    def test_unknown_key(self):
        self.assertFalse(self.registry.exists('nope'))
        self.assertIsNone(self.registry.find('nope'))
        self.assertIsNone(self.registry.get_status('nope'))
        self.assertIsNone(self.registry.get_media_url('nope'))

    def test_register_twice_fails(self):
        """At most one row per key"""
        asset_id = self.store.add()
        self.assertTrue(self.registry.register('block-1', asset_id, URL_V1))
        self.assertFalse(self.registry.register('block-1', self.store.add(), URL_V1))
        self.assertEqual(MediaResource.objects.filter(key='block-1').count(), 1)
        self.assertEqual(self.registry.find('block-1'), asset_id)

    def test_register_replaces_error_placeholder(self):
        """A successful sync wins over an error row left by a concurrent failure"""
        self.registry.record_error('block-1', 'JobFailure: lost', source_url=URL_V1)
        asset_id = self.store.add()

        self.assertTrue(self.registry.register('block-1', asset_id, URL_V1_RESIGNED, mime_type='image/png'))

        row = self.registry.get('block-1')
        self.assertEqual(row.status, MediaResource.STATUS_UPLOADED)
        self.assertEqual(row.asset_id, asset_id)
        self.assertEqual(row.source_url, URL_V1_RESIGNED)
        self.assertEqual(self.registry.get_status('block-1'), MediaResource.STATUS_UPLOADED)

    def test_register_rejects_missing_asset(self):
        """An asset id that does not resolve is refused"""
        self.assertFalse(self.registry.register('block-1', 'ghost', URL_V1))
        self.assertFalse(self.registry.exists('block-1'))

    def test_register_without_asset(self):
        """Unsupported and external rows carry no asset"""
        self.assertTrue(
            self.registry.register('block-1', None, URL_V1, status=MediaResource.STATUS_UNSUPPORTED)
        )
        self.assertIsNone(self.registry.find('block-1'))
        self.assertEqual(self.registry.get_status('block-1'), MediaResource.STATUS_UNSUPPORTED)

    def test_update(self):
        """Test replacing asset and URL"""
        self.registry.register('block-1', self.store.add(), URL_V1)
        new_asset = self.store.add()

        self.assertTrue(self.registry.update('block-1', new_asset, URL_V2))

        self.assertEqual(self.registry.find('block-1'), new_asset)
        self.assertEqual(self.registry.get_source_url('block-1'), URL_V2)

    def test_update_unknown_key(self):
        self.assertFalse(self.registry.update('nope', self.store.add(), URL_V1))

    def test_update_rejects_missing_asset(self):
        self.registry.register('block-1', self.store.add(), URL_V1)
        self.assertFalse(self.registry.update('block-1', 'ghost', URL_V2))

    def test_delete(self):
        self.registry.register('block-1', self.store.add(), URL_V1)
        self.assertTrue(self.registry.delete('block-1'))
        self.assertFalse(self.registry.exists('block-1'))
        self.assertIsNone(self.registry.find('block-1'))
        self.assertFalse(self.registry.delete('block-1'))

    def test_find_by_asset(self):
        """One asset may back several keys"""
        asset_id = self.store.add()
        self.registry.register('block-1', asset_id, URL_V1)
        self.registry.register('block-2', asset_id, URL_V1)
        self.assertEqual(sorted(self.registry.find_by_asset(asset_id)), ['block-1', 'block-2'])


class CacheTest(RegistryTestCase):
    """Tests for read caching"""

    def test_reads_are_cached(self):
        """Repeated lookups hit the cache, not the database"""
        self.registry.register('block-1', self.store.add(), URL_V1)
        self.registry.find('block-1')
        with self.assertNumQueries(0):
            self.registry.find('block-1')
            self.registry.get_status('block-1')
            self.registry.get_source_url('block-1')

    def test_misses_are_cached(self):
        self.registry.find('nope')
        with self.assertNumQueries(0):
            self.assertIsNone(self.registry.find('nope'))

    def test_register_invalidates_cached_miss(self):
        """A cached 'not registered' does not hide a later register"""
        self.assertIsNone(self.registry.find('block-1'))
        asset_id = self.store.add()
        self.registry.register('block-1', asset_id, URL_V1)
        self.assertEqual(self.registry.find('block-1'), asset_id)

    def test_update_invalidates(self):
        """A read after a write never sees the old value"""
        self.registry.register('block-1', self.store.add(), URL_V1)
        self.assertEqual(self.registry.get_source_url('block-1'), URL_V1)
        new_asset = self.store.add()
        self.registry.update('block-1', new_asset, URL_V2)
        self.assertEqual(self.registry.find('block-1'), new_asset)
        self.assertEqual(self.registry.get_source_url('block-1'), URL_V2)

    def test_mark_pending_invalidates(self):
        self.registry.register('block-1', self.store.add(), URL_V1)
        self.assertEqual(self.registry.get_status('block-1'), MediaResource.STATUS_UPLOADED)
        self.registry.mark_pending('block-1', URL_V2)
        self.assertEqual(self.registry.get_status('block-1'), MediaResource.STATUS_PENDING)

    def test_record_error_invalidates(self):
        self.assertIsNone(self.registry.get_status('block-1'))
        self.registry.record_error('block-1', 'DownloadError: boom', source_url=URL_V1)
        self.assertEqual(self.registry.get_status('block-1'), MediaResource.STATUS_ERROR)


class ReuploadTest(RegistryTestCase):
    """Tests for needs_reupload"""

    def test_resigned_url_is_same_object(self):
        """Only the query string changed"""
        self.registry.register('block-1', self.store.add(), URL_V1)
        self.assertFalse(self.registry.needs_reupload('block-1', URL_V1_RESIGNED))

    def test_new_path_is_new_object(self):
        """The upstream file was replaced"""
        self.registry.register('block-1', self.store.add(), URL_V1)
        self.assertTrue(self.registry.needs_reupload('block-1', URL_V2))

    def test_unknown_key_never_needs_reupload(self):
        self.assertFalse(self.registry.needs_reupload('nope', URL_V2))


class ErrorAndMaintenanceTest(RegistryTestCase):
    """Tests for record_error, stats and cleanup"""

    def test_record_error_on_unknown_key(self):
        """Unknown keys get an error row"""
        self.registry.record_error('block-1', 'boom', source_url=URL_V1, owner_id='page-1')
        row = self.registry.get('block-1')
        self.assertEqual(row.status, MediaResource.STATUS_ERROR)
        self.assertEqual(row.error_count, 1)
        self.assertEqual(row.last_error, 'boom')
        self.assertEqual(row.owner_id, 'page-1')

    def test_record_error_keeps_status(self):
        """Existing rows keep their status and asset"""
        asset_id = self.store.add()
        self.registry.register('block-1', asset_id, URL_V1)
        self.registry.record_error('block-1', 'first')
        self.registry.record_error('block-1', 'second')

        row = self.registry.get('block-1')
        self.assertEqual(row.status, MediaResource.STATUS_UPLOADED)
        self.assertEqual(row.asset_id, asset_id)
        self.assertEqual(row.error_count, 2)
        self.assertEqual(row.last_error, 'second')

    def test_cleanup_orphaned(self):
        """Entries whose asset vanished are removed, others stay"""
        kept = self.store.add()
        gone = self.store.add()
        self.registry.register('kept', kept, URL_V1)
        self.registry.register('gone', gone, URL_V2)
        self.registry.register('linked', None, URL_V1, status=MediaResource.STATUS_EXTERNAL)
        self.store.delete(gone)

        self.assertEqual(self.registry.cleanup_orphaned(dry_run=True), 1)
        self.assertTrue(self.registry.exists('gone'))

        self.assertEqual(self.registry.cleanup_orphaned(), 1)
        self.assertFalse(self.registry.exists('gone'))
        self.assertTrue(self.registry.exists('kept'))
        self.assertTrue(self.registry.exists('linked'))

    def test_get_stats(self):
        shared = self.store.add()
        self.registry.register('a', shared, URL_V1)
        self.registry.register('b', shared, URL_V1)
        self.registry.register('c', None, URL_V2, status=MediaResource.STATUS_UNSUPPORTED)
        self.registry.register('d', self.store.add(), URL_V2)
        self.store.delete(self.registry.find('d'))

        stats = self.registry.get_stats()

        self.assertEqual(stats['total_entries'], 4)
        self.assertEqual(stats['total_assets'], 2)
        self.assertEqual(stats['orphaned'], 1)
        self.assertEqual(stats['by_status'], {'uploaded': 3, 'unsupported': 1})

    def test_clear_all(self):
        self.registry.register('a', self.store.add(), URL_V1)
        self.registry.register('b', self.store.add(), URL_V2)
        self.registry.find('a')
        self.assertEqual(self.registry.clear_all(), 2)
        self.assertIsNone(self.registry.find('a'))
        self.assertEqual(MediaResource.objects.count(), 0)


class ResourceKeyTest(TestCase):
    """Tests for resource_key and url_base"""

    def test_block_id_preferred(self):
        self.assertEqual(resource_key(block_id='abc-123', url=URL_V1), 'abc-123')

    def test_url_key_ignores_signature(self):
        """Re-signed URLs map to the same key"""
        key = resource_key(url=URL_V1)
        self.assertTrue(key.startswith('url_'))
        self.assertEqual(len(key), 36)
        self.assertEqual(key, resource_key(url=URL_V1_RESIGNED))
        self.assertNotEqual(key, resource_key(url=URL_V2))

    def test_requires_something(self):
        with self.assertRaises(ValueError):
            resource_key()

    def test_url_base(self):
        self.assertEqual(url_base('https://example.com/a/b.png?x=1#frag'), 'https://example.com/a/b.png')
        self.assertEqual(url_base(''), '')
