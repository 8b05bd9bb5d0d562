from django.db.models.signals import pre_delete
from django.dispatch import receiver

from mirror.models import StoredAsset
from mirror.service.config import get_log_path
from mirror.telemetry import write_log


@receiver(pre_delete, sender=StoredAsset)
def cleanup_asset_file(sender, instance, **kwargs):
    """
    Delete the stored file when a StoredAsset is deleted.
    This handles both single and bulk deletions.
    """
    if not instance.file:
        return
    try:
        instance.file.delete(save=False)
    except OSError as e:
        # Log error but continue with deletion
        write_log(get_log_path(), f'Error deleting asset file {instance.file.name}: {e}')
