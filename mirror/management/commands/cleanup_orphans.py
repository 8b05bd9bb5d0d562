"""
Management command to remove registry entries whose asset was deleted.
"""

from django.core.management.base import BaseCommand

from mirror.registry import MediaRegistry


class Command(BaseCommand):
    help = 'Remove registry entries pointing at assets that no longer exist'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be removed without actually removing',
        )

    def handle(self, *args, **options):
        registry = MediaRegistry()
        keys = registry.orphaned_keys()

        if not keys:
            self.stdout.write(self.style.SUCCESS('No orphaned entries found'))
            return

        self.stdout.write(f"Found {len(keys)} orphaned entr{'ies' if len(keys) != 1 else 'y'}:")
        for key in keys:
            self.stdout.write(f'  {key}')

        if options['dry_run']:
            self.stdout.write(self.style.WARNING('\nDRY RUN: nothing removed'))
            return

        removed = registry.cleanup_orphaned()
        self.stdout.write(self.style.SUCCESS(f'✓ Removed {removed} orphaned entries'))
