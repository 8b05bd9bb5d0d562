"""
Asset store upload service.

Moves a normalized file into permanent storage and records its metadata.
The default store is Django's file storage plus a StoredAsset row; anything
implementing the same five methods can be swapped in.
"""

import os
from pathlib import Path
from typing import Optional, Protocol

from django.core.files import File
from django.core.files.storage import FileSystemStorage
from django.db import transaction

from mirror.errors import MediaSyncError
from mirror.service.process import detect_mime

METADATA_FIELDS = ['title', 'caption', 'alt_text', 'description']


class AssetFileSystemStorage(FileSystemStorage):
    """File storage that resolves name collisions with a numeric suffix."""

    def get_available_name(self, name, max_length=None):
        dir_name, file_name = os.path.split(name)
        root, ext = os.path.splitext(file_name)
        candidate = name
        counter = 1
        while self.exists(candidate):
            candidate = os.path.join(dir_name, f'{root}-{counter}{ext}')
            counter += 1
        if max_length is not None and len(candidate) > max_length:
            return super().get_available_name(name, max_length=max_length)
        return candidate


def get_asset_storage():
    return AssetFileSystemStorage()


class AssetStore(Protocol):
    def upload(self, path: Path, mime_type: str, metadata: dict) -> str: ...

    def resolve(self, asset_id: str) -> Optional[str]: ...

    def get_metadata(self, asset_id: str) -> Optional[dict]: ...

    def update_metadata(self, asset_id: str, metadata: dict) -> bool: ...

    def delete(self, asset_id: str) -> bool: ...


class StorageAssetStore:
    """Asset store backed by StoredAsset rows and Django file storage"""

    def upload(self, path, mime_type, metadata):
        from mirror.models import StoredAsset

        path = Path(path)
        filename = metadata.get('filename') or path.name
        if Path(filename).suffix.lower() != path.suffix.lower():
            filename = f'{Path(filename).stem}{path.suffix}'

        asset = StoredAsset(
            mime_type=mime_type,
            file_size=path.stat().st_size,
            owner_id=metadata.get('owner_id') or '',
            **{field: metadata.get(field) or '' for field in METADATA_FIELDS},
        )
        with open(path, 'rb') as fh:
            asset.file.save(filename, File(fh), save=False)
        try:
            with transaction.atomic():
                asset.save(force_insert=True)
        except Exception:
            asset.file.delete(save=False)
            raise
        return asset.id

    def _get(self, asset_id):
        from mirror.models import StoredAsset

        if not asset_id:
            return None
        return StoredAsset.objects.filter(pk=asset_id).first()

    def resolve(self, asset_id):
        asset = self._get(asset_id)
        if asset is None or not asset.file or not asset.file.storage.exists(asset.file.name):
            return None
        return asset.file.url

    def exists(self, asset_id):
        return self.resolve(asset_id) is not None

    def get_metadata(self, asset_id):
        asset = self._get(asset_id)
        if asset is None:
            return None
        data = {field: getattr(asset, field) for field in METADATA_FIELDS}
        data.update(
            {
                'id': asset.id,
                'url': asset.file.url if asset.file else None,
                'mime_type': asset.mime_type,
                'file_size': asset.file_size,
                'owner_id': asset.owner_id,
            }
        )
        return data

    def update_metadata(self, asset_id, metadata):
        asset = self._get(asset_id)
        if asset is None:
            return False
        changed = []
        for field in METADATA_FIELDS:
            if field in metadata:
                setattr(asset, field, metadata[field] or '')
                changed.append(field)
        if changed:
            asset.save(update_fields=changed)
        return True

    def delete(self, asset_id):
        asset = self._get(asset_id)
        if asset is None:
            return False
        # File removal happens in the pre_delete signal
        asset.delete()
        return True


class MediaUploader:
    """
    Uploads normalized files into the asset store.

    The local file is always removed afterwards, whether or not the upload
    succeeded.
    """

    def __init__(self, store=None, logger=None):
        self.store = store if store is not None else StorageAssetStore()
        self.logger = logger

    def log(self, message):
        if self.logger:
            self.logger(message)

    def upload(self, file_path, metadata=None, owner_id='', mime_type=None):
        """
        Upload a file and return its asset id.

        Args:
            file_path: Local file to upload
            metadata: Optional dict with filename, title, caption, alt_text, description
            owner_id: Owning document id
            mime_type: Detected MIME type (sniffed from the file when omitted)

        Returns:
            str: asset id

        Raises:
            MediaSyncError: the file is missing
        """
        file_path = Path(file_path)
        try:
            if not file_path.exists():
                raise MediaSyncError(f'File to upload does not exist: {file_path}')

            mime_type = mime_type or detect_mime(file_path)
            data = dict(metadata or {})
            data['owner_id'] = owner_id or ''
            if not mime_type.startswith('image/'):
                data.pop('alt_text', None)

            asset_id = self.store.upload(file_path, mime_type, data)
            self.log(f'Uploaded {file_path.name} as asset {asset_id} ({mime_type})')
            return asset_id
        finally:
            file_path.unlink(missing_ok=True)

    def update_metadata(self, asset_id, metadata):
        return self.store.update_metadata(asset_id, metadata)

    def get_asset_metadata(self, asset_id):
        return self.store.get_metadata(asset_id)

    def discard(self, asset_id):
        """Delete an uploaded asset that will not be referenced"""
        deleted = self.store.delete(asset_id)
        if deleted:
            self.log(f'Discarded asset {asset_id}')
        return deleted
