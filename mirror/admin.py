from django.contrib import admin
from django.utils.html import format_html

from mirror.models import MediaResource, StoredAsset, SyncLogEntry
from mirror.operations import ACTION_EXPIRED, retry_resource
from mirror.telemetry import resolve_entry
from mirror.utils import format_filesize


@admin.register(MediaResource)
class MediaResourceAdmin(admin.ModelAdmin):
    list_display = [
        'key',
        'status',
        'asset_id',
        'content_class',
        'owner_id',
        'error_count',
        'updated_at',
    ]

    list_filter = [
        'status',
        'content_class',
        'registered_at',
    ]

    search_fields = [
        'key',
        'asset_id',
        'source_url',
        'owner_id',
    ]

    readonly_fields = [
        'registered_at',
        'updated_at',
        'error_count',
        'last_error',
    ]

    fieldsets = [
        ('Identification', {'fields': ['key', 'owner_id', 'content_class']}),
        ('Status', {'fields': ['status', 'asset_id', 'mime_type', 'error_count', 'last_error']}),
        ('Source', {'fields': ['source_url']}),
        ('Timestamps', {'fields': ['registered_at', 'updated_at']}),
    ]

    actions = ['refetch_resources']

    def refetch_resources(self, request, queryset):
        count = 0
        expired = 0
        for resource in queryset:
            if not resource.source_url:
                continue
            if retry_resource(resource.key).action == ACTION_EXPIRED:
                expired += 1
                continue
            count += 1
        message = f'Re-fetching {count} resources.'
        if expired:
            message += f' {expired} skipped because their source URL expired.'
        self.message_user(request, message)

    refetch_resources.short_description = 'Re-fetch selected resources'


@admin.register(StoredAsset)
class StoredAssetAdmin(admin.ModelAdmin):
    list_display = ['id', 'title', 'mime_type', 'file_size_display', 'owner_id', 'created_at']
    list_filter = ['mime_type', 'created_at']
    search_fields = ['id', 'title', 'file', 'owner_id']
    readonly_fields = ['id', 'created_at', 'preview_display']

    def file_size_display(self, obj):
        if obj.file_size:
            return format_filesize(obj.file_size)
        return '-'

    file_size_display.short_description = 'File Size'

    def preview_display(self, obj):
        if not obj.file or not obj.is_image:
            return '-'
        return format_html(
            '<img src="{}" width="100%" height="300" alt="{}" '
            'style="object-fit: contain; border-radius: 4px;">',
            obj.file.url,
            obj.alt_text,
        )

    preview_display.short_description = 'Preview'


@admin.register(SyncLogEntry)
class SyncLogEntryAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'severity', 'category', 'owner_id', 'short_message', 'resolved']
    list_filter = ['severity', 'category', 'resolved', 'created_at']
    search_fields = ['message', 'owner_id']
    readonly_fields = ['created_at', 'resolved_at', 'resolved_by', 'context']

    actions = ['resolve_entries']

    def short_message(self, obj):
        return obj.message[:80]

    short_message.short_description = 'Message'

    def resolve_entries(self, request, queryset):
        resolved_by = request.user.get_username() if request.user.is_authenticated else ''
        count = sum(1 for entry in queryset if resolve_entry(entry.pk, resolved_by=resolved_by))
        self.message_user(request, f'Resolved {count} log entries.')

    resolve_entries.short_description = 'Mark selected entries resolved'
