"""
Management command to clean up abandoned download temp files.

Finds and removes mediasync_* files in MEDIASYNC_TEMP_DIR that were left
behind by killed workers.
"""
from datetime import timedelta
from pathlib import Path

from django.core.management.base import BaseCommand
from django.utils import timezone

from mirror.service.config import get_temp_dir
from mirror.utils import format_filesize

TEMP_PREFIX = 'mediasync_'


class Command(BaseCommand):
    help = 'Clean up abandoned mediasync_* temp files from interrupted downloads'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without actually deleting'
        )
        parser.add_argument(
            '--force',
            action='store_true',
            help='Delete temp files without confirmation'
        )
        parser.add_argument(
            '--max-age',
            type=int,
            default=60,
            help='Maximum age in minutes before considering a temp file abandoned (default: 60)'
        )

    def handle(self, *args, **options):
        """Find and clean up abandoned temp files"""
        dry_run = options['dry_run']
        force = options['force']
        max_age_minutes = options['max_age']

        temp_dir = Path(get_temp_dir())
        temp_files = []
        if temp_dir.exists():
            temp_files = [f for f in temp_dir.glob(f'{TEMP_PREFIX}*') if f.is_file()]

        if not temp_files:
            self.stdout.write(self.style.SUCCESS("No temp files found"))
            return

        now = timezone.now()
        max_age = timedelta(minutes=max_age_minutes)
        stale = []
        for temp_file in temp_files:
            mtime = temp_file.stat().st_mtime
            age = now - timezone.datetime.fromtimestamp(mtime, tz=timezone.get_current_timezone())
            if age > max_age:
                stale.append((temp_file, age))

        if not stale:
            self.stdout.write(self.style.SUCCESS(
                f"Found {len(temp_files)} temp file{'s' if len(temp_files) != 1 else ''}, "
                f"but none are older than {max_age_minutes} minutes"
            ))
            return

        self.stdout.write(f"\nFound {len(stale)} abandoned temp file{'s' if len(stale) != 1 else ''}:")
        self.stdout.write(f"{'=' * 80}")

        total_size = 0
        for temp_file, age in stale:
            size = temp_file.stat().st_size
            total_size += size
            age_str = str(age).split('.')[0]  # Remove microseconds
            self.stdout.write(f"{temp_file.name:50} | Age: {age_str:15} | Size: {format_filesize(size)}")

        self.stdout.write(f"{'=' * 80}")
        self.stdout.write(f"Total size: {format_filesize(total_size)}\n")

        if dry_run:
            self.stdout.write(self.style.WARNING(
                f"\nDRY RUN: Would delete {len(stale)} file{'s' if len(stale) != 1 else ''}"
            ))
            self.stdout.write("Run without --dry-run to actually delete")
            return

        if not force:
            response = input(f"\nDelete these {len(stale)} file{'s' if len(stale) != 1 else ''}? [y/N]: ")
            if response.lower() != 'y':
                self.stdout.write("Cancelled")
                return

        deleted_count = 0
        for temp_file, _ in stale:
            try:
                temp_file.unlink()
                self.stdout.write(self.style.SUCCESS(f"✓ Deleted: {temp_file.name}"))
                deleted_count += 1
            except OSError as e:
                self.stdout.write(self.style.ERROR(f"✗ Failed to delete {temp_file.name}: {e}"))

        self.stdout.write(self.style.SUCCESS(
            f"\n✓ Deleted {deleted_count} of {len(stale)} temp file{'s' if len(stale) != 1 else ''}"
        ))
