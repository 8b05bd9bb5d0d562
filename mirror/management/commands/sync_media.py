"""
Management command to sync one external media URL.

By default the job is enqueued on the huey queue; with --wait it runs in
the foreground, which is useful for debugging a single URL.
"""

import json

from django.core.management.base import BaseCommand, CommandError

from mirror.errors import MediaSyncError
from mirror.operations import sync_media_reference
from mirror.service.constants import CONTENT_CLASSES, CONTENT_CLASS_IMAGE


class Command(BaseCommand):
    help = 'Sync an external media URL into the asset store'

    def add_arguments(self, parser):
        parser.add_argument('url', type=str, help='Media URL to sync')
        parser.add_argument('--block-id', type=str, default=None, help='Originating block id (used as key)')
        parser.add_argument('--owner', type=str, default='', help='Owning document id')
        parser.add_argument(
            '--class',
            dest='content_class',
            type=str,
            choices=CONTENT_CLASSES,
            default=CONTENT_CLASS_IMAGE,
            help='Content class (default: image)',
        )
        parser.add_argument('--title', type=str, default='', help='Asset title')
        parser.add_argument('--alt', type=str, default='', help='Alt text (images only)')
        parser.add_argument('--wait', action='store_true', help='Run in the foreground instead of enqueueing')
        parser.add_argument('--verbose', action='store_true', help='Verbose output')
        parser.add_argument('--json', action='store_true', help='JSON output')

    def handle(self, *args, **options):
        url = options['url']
        verbose = options['verbose']
        json_output = options['json']

        metadata = {}
        if options['title']:
            metadata['title'] = options['title']
        if options['alt']:
            metadata['alt_text'] = options['alt']

        def log(message):
            if verbose:
                self.stdout.write(message)

        try:
            outcome = sync_media_reference(
                url,
                block_id=options['block_id'],
                owner_id=options['owner'],
                content_class=options['content_class'],
                metadata=metadata,
                wait=options['wait'],
                logger=log,
            )
        except MediaSyncError as e:
            if json_output:
                self.stdout.write(json.dumps({'status': 'error', 'error': str(e)}))
                return
            raise CommandError(f'Sync failed: {e}') from e

        result = {
            'key': outcome.key,
            'action': outcome.action,
            'status': outcome.status,
            'job_id': outcome.job_id,
        }
        if json_output:
            self.stdout.write(json.dumps(result, indent=2))
            return

        self.stdout.write(self.style.SUCCESS(f'✓ {outcome.action}'))
        self.stdout.write(f'  Key: {outcome.key}')
        if outcome.status:
            self.stdout.write(f'  Status: {outcome.status}')
        if outcome.job_id:
            self.stdout.write(f'  Job: {outcome.job_id}')
