"""
Deduplication registry.

Maps a resource key to the asset it was stored as, plus its sync status.
Read lookups go through the media_registry cache; every write invalidates
the cached entry for its key.
"""

import hashlib

from django.core.cache import caches
from django.db import IntegrityError, transaction
from django.db.models import Count, F
from django.utils import timezone

from mirror.models import MediaResource
from mirror.service.upload import StorageAssetStore
from mirror.utils import url_base

CACHE_ALIAS = 'media_registry'
CACHE_PREFIX = 'media_registry_'


class MediaRegistry:
    """
    Registry of synced media, one row per resource key.

    Args:
        asset_store: Store used to check that asset ids still resolve
        cache: Django cache used for read lookups (default: media_registry alias)
        logger: Optional callable(str) for logging
    """

    def __init__(self, asset_store=None, cache=None, logger=None):
        self.asset_store = asset_store if asset_store is not None else StorageAssetStore()
        self.cache = cache if cache is not None else caches[CACHE_ALIAS]
        self.logger = logger

    def log(self, message):
        if self.logger:
            self.logger(message)

    def _cache_key(self, key):
        return CACHE_PREFIX + hashlib.md5(key.encode('utf-8')).hexdigest()

    def _invalidate(self, key):
        self.cache.delete(self._cache_key(key))

    def _snapshot(self, key):
        cache_key = self._cache_key(key)
        snapshot = self.cache.get(cache_key)
        if snapshot is None:
            row = (
                MediaResource.objects.filter(key=key)
                .values('asset_id', 'status', 'source_url', 'mime_type')
                .first()
            )
            # An empty dict caches "not registered" as well
            snapshot = row or {}
            self.cache.set(cache_key, snapshot)
        return snapshot

    def _asset_resolves(self, asset_id):
        return self.asset_store.resolve(asset_id) is not None

    def exists(self, key):
        """Uncached existence check, used to skip work already done"""
        return MediaResource.objects.filter(key=key).exists()

    def register(
        self,
        key,
        asset_id=None,
        source_url='',
        status=MediaResource.STATUS_UPLOADED,
        mime_type='',
        owner_id='',
        content_class='image',
    ):
        """
        Create the registry row for a key.

        Returns:
            bool: False if the key is already registered or the asset id
            does not resolve in the asset store. An error row without an
            asset counts as unregistered and is overwritten.
        """
        if asset_id is not None and not self._asset_resolves(asset_id):
            self.log(f'Not registering {key}: asset {asset_id} does not exist')
            return False

        try:
            with transaction.atomic():
                MediaResource.objects.create(
                    key=key,
                    asset_id=asset_id,
                    source_url=source_url or '',
                    status=status,
                    mime_type=mime_type or '',
                    owner_id=owner_id or '',
                    content_class=content_class,
                )
        except IntegrityError:
            # A terminal failure may have left an error placeholder first
            upgraded = MediaResource.objects.filter(
                key=key, status=MediaResource.STATUS_ERROR, asset_id__isnull=True
            ).update(
                asset_id=asset_id,
                source_url=source_url or '',
                status=status,
                mime_type=mime_type or '',
                updated_at=timezone.now(),
            )
            if upgraded:
                self.log(f'Replaced error placeholder for {key}')
                return True
            self.log(f'Key {key} is already registered')
            return False
        finally:
            self._invalidate(key)
        return True

    def update(self, key, asset_id=None, source_url='', status=MediaResource.STATUS_UPLOADED, mime_type=''):
        """
        Replace the asset, URL and status of an existing key.

        Returns:
            bool: False if the key is unknown or the asset id does not resolve
        """
        if asset_id is not None and not self._asset_resolves(asset_id):
            self.log(f'Not updating {key}: asset {asset_id} does not exist')
            return False

        fields = {
            'asset_id': asset_id,
            'source_url': source_url or '',
            'status': status,
            'updated_at': timezone.now(),
        }
        if mime_type:
            fields['mime_type'] = mime_type
        updated = MediaResource.objects.filter(key=key).update(**fields)
        self._invalidate(key)
        return updated > 0

    def mark_pending(self, key, source_url):
        """Flag a key for re-download, keeping its current asset until replaced"""
        updated = MediaResource.objects.filter(key=key).update(
            status=MediaResource.STATUS_PENDING,
            source_url=source_url,
            updated_at=timezone.now(),
        )
        self._invalidate(key)
        return updated > 0

    def record_error(self, key, message, source_url='', owner_id='', content_class='image'):
        """
        Record a terminal job failure for a key.

        An existing row keeps its status and asset; an unknown key gets an
        'error' row so it is not picked up again until an operator retries it.
        """
        fields = {
            'error_count': F('error_count') + 1,
            'last_error': message,
            'updated_at': timezone.now(),
        }
        updated = MediaResource.objects.filter(key=key).update(**fields)
        if not updated:
            try:
                with transaction.atomic():
                    MediaResource.objects.create(
                        key=key,
                        status=MediaResource.STATUS_ERROR,
                        source_url=source_url or '',
                        owner_id=owner_id or '',
                        content_class=content_class,
                        error_count=1,
                        last_error=message,
                    )
            except IntegrityError:
                MediaResource.objects.filter(key=key).update(**fields)
        self._invalidate(key)

    def find(self, key):
        """Get the asset id for a key, or None"""
        return self._snapshot(key).get('asset_id')

    def get_status(self, key):
        return self._snapshot(key).get('status')

    def get_source_url(self, key):
        return self._snapshot(key).get('source_url') or None

    def get_media_url(self, key):
        """Resolve a key to its public asset URL, or None"""
        asset_id = self.find(key)
        if not asset_id:
            return None
        return self.asset_store.resolve(asset_id)

    def get(self, key):
        """Get the full registry row (uncached)"""
        return MediaResource.objects.filter(key=key).first()

    def delete(self, key):
        deleted, _ = MediaResource.objects.filter(key=key).delete()
        self._invalidate(key)
        return deleted > 0

    def find_by_asset(self, asset_id):
        """Get every key that references an asset"""
        return list(MediaResource.objects.filter(asset_id=asset_id).values_list('key', flat=True))

    def needs_reupload(self, key, current_url):
        """
        Check whether the upstream object behind a key was replaced.

        Signed URLs rotate their query string on every fetch, so only a
        change of URL base counts.
        """
        stored_url = self.get_source_url(key)
        if not stored_url:
            return False
        return url_base(stored_url) != url_base(current_url)

    def orphaned_keys(self):
        """Keys whose asset id no longer resolves in the asset store"""
        rows = MediaResource.objects.exclude(asset_id__isnull=True).values_list('key', 'asset_id')
        return [key for key, asset_id in list(rows) if not self._asset_resolves(asset_id)]

    def get_stats(self):
        """
        Summarize the registry.

        Returns:
            dict: total_entries, total_assets, orphaned and a per-status breakdown
        """
        by_status = {
            row['status']: row['count']
            for row in MediaResource.objects.order_by().values('status').annotate(count=Count('id'))
        }
        return {
            'total_entries': MediaResource.objects.count(),
            'total_assets': MediaResource.objects.exclude(asset_id__isnull=True).order_by()
            .values('asset_id')
            .distinct()
            .count(),
            'orphaned': len(self.orphaned_keys()),
            'by_status': by_status,
        }

    def cleanup_orphaned(self, dry_run=False):
        """
        Remove entries whose asset was deleted from the asset store.

        Returns:
            int: number of entries removed (or that would be removed)
        """
        keys = self.orphaned_keys()
        if dry_run:
            return len(keys)
        for key in keys:
            MediaResource.objects.filter(key=key).delete()
            self._invalidate(key)
        if keys:
            self.log(f'Removed {len(keys)} orphaned registry entries')
        return len(keys)

    def clear_all(self):
        """Delete every registry entry. Returns the number removed."""
        keys = list(MediaResource.objects.values_list('key', flat=True))
        MediaResource.objects.all().delete()
        for key in keys:
            self._invalidate(key)
        return len(keys)
