"""
Management command to inspect the media registry and retry failed keys.
"""

import json

from django.core.management.base import BaseCommand, CommandError

from mirror.models import MediaResource
from mirror.operations import ACTION_EXPIRED, retry_resource
from mirror.registry import MediaRegistry


class Command(BaseCommand):
    help = 'Show media registry statistics, inspect a key, or retry a failed key'

    def add_arguments(self, parser):
        parser.add_argument('--key', type=str, default=None, help='Show one registry entry')
        parser.add_argument('--retry', type=str, default=None, metavar='KEY', help='Re-schedule a key')
        parser.add_argument('--url', type=str, default=None, help='Source URL to use with --retry')
        parser.add_argument('--wait', action='store_true', help='Run the retry in the foreground')
        parser.add_argument('--json', action='store_true', help='JSON output')

    def handle(self, *args, **options):
        registry = MediaRegistry()

        if options['retry']:
            try:
                outcome = retry_resource(options['retry'], url=options['url'], wait=options['wait'])
            except (MediaResource.DoesNotExist, ValueError) as e:
                raise CommandError(str(e)) from e
            if outcome.action == ACTION_EXPIRED:
                self.stdout.write(
                    self.style.WARNING(f'Source URL for {outcome.key} has expired, pass a fresh one with --url')
                )
                return
            self.stdout.write(self.style.SUCCESS(f'✓ {outcome.action} {outcome.key}'))
            if outcome.job_id:
                self.stdout.write(f'  Job: {outcome.job_id}')
            return

        if options['key']:
            resource = registry.get(options['key'])
            if resource is None:
                raise CommandError(f"No registry entry for {options['key']}")
            data = {
                'key': resource.key,
                'status': resource.status,
                'asset_id': resource.asset_id,
                'asset_url': registry.get_media_url(resource.key),
                'mime_type': resource.mime_type,
                'source_url': resource.source_url,
                'owner_id': resource.owner_id,
                'error_count': resource.error_count,
                'last_error': resource.last_error,
            }
            if options['json']:
                self.stdout.write(json.dumps(data, indent=2))
                return
            for name, value in data.items():
                self.stdout.write(f'  {name}: {value if value not in (None, "") else "-"}')
            return

        stats = registry.get_stats()
        if options['json']:
            self.stdout.write(json.dumps(stats, indent=2))
            return

        self.stdout.write(f"Entries: {stats['total_entries']}")
        self.stdout.write(f"Assets:  {stats['total_assets']}")
        orphaned = stats['orphaned']
        style = self.style.WARNING if orphaned else self.style.SUCCESS
        self.stdout.write(style(f'Orphaned: {orphaned}'))
        for status, count in sorted(stats['by_status'].items()):
            self.stdout.write(f'  {status:12} {count}')
