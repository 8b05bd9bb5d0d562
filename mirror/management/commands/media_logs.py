"""
Management command to review and resolve media sync log entries.
"""

from django.core.management.base import BaseCommand, CommandError

from mirror.models import SyncLogEntry
from mirror.telemetry import (
    get_unresolved,
    purge_resolved,
    resolve_entry,
    resolve_for_owner,
    unresolved_count,
)

SEVERITY_STYLES = {
    SyncLogEntry.SEVERITY_ERROR: 'ERROR',
    SyncLogEntry.SEVERITY_WARNING: 'WARNING',
    SyncLogEntry.SEVERITY_INFO: 'NOTICE',
}


class Command(BaseCommand):
    help = 'List unresolved media sync problems, resolve them, or purge old entries'

    def add_arguments(self, parser):
        parser.add_argument('--owner', type=str, default=None, help='Only entries for this document')
        parser.add_argument(
            '--severity',
            type=str,
            choices=[choice for choice, _ in SyncLogEntry.SEVERITY_CHOICES],
            default=None,
            help='Only entries with this severity',
        )
        parser.add_argument('--category', type=str, default=None, help='Only entries in this category')
        parser.add_argument('--limit', type=int, default=50, help='Maximum entries to list (default: 50)')
        parser.add_argument('--resolve', type=int, default=None, metavar='ID', help='Resolve one entry')
        parser.add_argument(
            '--resolve-owner', type=str, default=None, metavar='OWNER', help='Resolve all entries of a document'
        )
        parser.add_argument(
            '--purge-days',
            type=int,
            default=None,
            metavar='DAYS',
            help='Delete resolved entries older than DAYS',
        )

    def handle(self, *args, **options):
        if options['resolve'] is not None:
            if not resolve_entry(options['resolve'], resolved_by='cli'):
                raise CommandError(f"No unresolved entry with id {options['resolve']}")
            self.stdout.write(self.style.SUCCESS(f"✓ Resolved entry {options['resolve']}"))
            return

        if options['resolve_owner']:
            count = resolve_for_owner(options['resolve_owner'], resolved_by='cli')
            self.stdout.write(self.style.SUCCESS(f'✓ Resolved {count} entries'))
            return

        if options['purge_days'] is not None:
            deleted = purge_resolved(options['purge_days'])
            self.stdout.write(self.style.SUCCESS(f'✓ Purged {deleted} resolved entries'))
            return

        entries = get_unresolved(
            owner_id=options['owner'],
            severity=options['severity'],
            category=options['category'],
            limit=options['limit'],
        )
        if not entries:
            self.stdout.write(self.style.SUCCESS('No unresolved entries'))
            return

        for entry in entries:
            style = getattr(self.style, SEVERITY_STYLES.get(entry.severity, 'NOTICE'))
            timestamp = entry.created_at.strftime('%Y-%m-%d %H:%M:%S')
            self.stdout.write(style(f'[{entry.pk}] {timestamp} {entry.severity.upper():7} {entry.message}'))
            if entry.owner_id:
                self.stdout.write(f'      owner: {entry.owner_id}')
            url = entry.context.get('url')
            if url:
                self.stdout.write(f'      url: {url}')

        self.stdout.write(f'\n{unresolved_count()} unresolved in total')
