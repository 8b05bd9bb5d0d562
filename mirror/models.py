from django.db import models
from django.utils import timezone
from nanoid import generate


def generate_nanoid():
    """Generate NanoID with A-Z a-z 0-9 alphabet"""
    alphabet = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
    return generate(alphabet, size=21)


def asset_storage():
    from mirror.service.upload import get_asset_storage

    return get_asset_storage()


class MediaResource(models.Model):
    """Sync state of one external media item, keyed by resource key"""

    STATUS_PENDING = "pending"
    STATUS_UPLOADED = "uploaded"
    STATUS_UNSUPPORTED = "unsupported"
    STATUS_EXTERNAL = "external"
    STATUS_ERROR = "error"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_UPLOADED, "Uploaded"),
        (STATUS_UNSUPPORTED, "Unsupported"),
        (STATUS_EXTERNAL, "External"),
        (STATUS_ERROR, "Error"),
    ]

    CONTENT_CLASS_CHOICES = [
        ("image", "Image"),
        ("file", "File"),
    ]

    # Block id of the originating content, or url_<md5> of the URL base
    key = models.CharField(max_length=255, unique=True)
    asset_id = models.CharField(max_length=21, null=True, blank=True, db_index=True)

    # Signed URLs are long and change on every fetch, keep the latest one seen
    source_url = models.TextField(blank=True)
    mime_type = models.CharField(max_length=100, blank=True)
    content_class = models.CharField(max_length=10, choices=CONTENT_CLASS_CHOICES, default="image")
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True
    )
    owner_id = models.CharField(max_length=255, blank=True, db_index=True)

    error_count = models.IntegerField(default=0)
    last_error = models.TextField(blank=True)

    registered_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)

    class Meta:
        ordering = ["-registered_at"]

    def __str__(self):
        return f"{self.key} ({self.status})"

    @property
    def is_uploaded(self):
        return self.status == self.STATUS_UPLOADED

    @property
    def has_error(self):
        return self.status == self.STATUS_ERROR


class StoredAsset(models.Model):
    """A permanent copy of a media file in the asset store"""

    id = models.CharField(max_length=21, primary_key=True, default=generate_nanoid, editable=False)
    file = models.FileField(upload_to="mediasync/%Y/%m/", storage=asset_storage, max_length=500)
    mime_type = models.CharField(max_length=100, blank=True)
    file_size = models.BigIntegerField(null=True, blank=True)

    title = models.CharField(max_length=500, blank=True)
    caption = models.TextField(blank=True)
    alt_text = models.CharField(max_length=500, blank=True)
    description = models.TextField(blank=True)

    # Owning document id
    owner_id = models.CharField(max_length=255, blank=True, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.title or self.file.name} ({self.id})"

    @property
    def is_image(self):
        return self.mime_type.startswith("image/")


class SyncLogEntry(models.Model):
    """Operator-visible record of media that could not be synced normally"""

    SEVERITY_INFO = "info"
    SEVERITY_WARNING = "warning"
    SEVERITY_ERROR = "error"

    SEVERITY_CHOICES = [
        (SEVERITY_INFO, "Info"),
        (SEVERITY_WARNING, "Warning"),
        (SEVERITY_ERROR, "Error"),
    ]

    CATEGORY_MEDIA = "media"

    owner_id = models.CharField(max_length=255, blank=True, db_index=True)
    severity = models.CharField(max_length=10, choices=SEVERITY_CHOICES, db_index=True)
    category = models.CharField(max_length=50, default=CATEGORY_MEDIA, db_index=True)
    message = models.TextField()
    # url, mime_type, filename, key
    context = models.JSONField(default=dict, blank=True)

    resolved = models.BooleanField(default=False, db_index=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolved_by = models.CharField(max_length=150, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "sync log entries"

    def __str__(self):
        return f"[{self.severity}] {self.message[:60]}"
