"""
Management command enforcing the trash retention window.

Installments soft-deleted more than TRASH_RETENTION_DAYS ago are purged
locally (queueing their hard delete) and removed from the remote store.
Meant to run daily from cron.

Usage:
    python manage.py purge_trash
    python manage.py purge_trash --dry-run
"""

from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.installments.models import Installment
from apps.sync.services import build_reconciler


class Command(BaseCommand):
    help = 'Permanently delete installments that have been in the trash too long'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be purged without making changes',
        )

    def handle(self, *args, **options):
        days = getattr(settings, 'TRASH_RETENTION_DAYS', 30)
        cutoff = timezone.now() - timedelta(days=days)

        expired = Installment.objects.trashed().filter(deleted_at__lt=cutoff).select_related('owner')
        count = expired.count()

        if options['dry_run']:
            self.stdout.write(f'\nFound {count} installment(s) deleted more than {days} days ago:\n')
            for installment in expired:
                self.stdout.write(
                    f'  - {installment.creditor_name} | {installment.total_amount} | '
                    f'Owner: {installment.owner} | Deleted: {installment.deleted_at:%Y-%m-%d}'
                )
            self.stdout.write(self.style.WARNING('\n--dry-run mode: No changes made.'))
            return

        with build_reconciler() as reconciler:
            report = reconciler.sweep_trash()

        self.stdout.write(
            self.style.SUCCESS(
                f'Purged {len(report.purged)} installment(s) locally, '
                f'{report.remote_deleted} deleted from the remote store.'
            )
        )
