"""
Management command running the daily reminder scan.

Usage:
    python manage.py send_due_reminders
    python manage.py send_due_reminders --date 1403/05/10
    python manage.py send_due_reminders --dry-run
"""

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from apps.jalali.conversion import date_from_jalali, jalali_from_date
from apps.jalali.exceptions import InvalidDateError
from apps.notifications.exceptions import PushNotConfiguredError
from apps.notifications.services import build_notifier, collect_due_reminders, dispatch_due_reminders
from apps.sync.exceptions import ConnectivityUnavailableError, RemoteRejectedError
from apps.sync.services import remote as remote_module


class Command(BaseCommand):
    help = 'Push upcoming and due payment reminders for today'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            help='Jalali date to scan for (YYYY/MM/DD), defaults to today',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List the reminders without sending them',
        )

    def _scan_date(self, value):
        if not value:
            return timezone.localdate()
        try:
            return date_from_jalali(value)
        except InvalidDateError as e:
            raise CommandError(str(e))

    def handle(self, *args, **options):
        today = self._scan_date(options['date'])
        remote = remote_module.get_remote_store()
        if remote is None:
            raise CommandError('REMOTE_STORE_URL is not set; there are no subscriptions to notify.')

        try:
            if options['dry_run']:
                reminders = collect_due_reminders(remote, today)
                self.stdout.write(f'\n{len(reminders)} reminder(s) for {jalali_from_date(today)}:\n')
                for reminder in reminders:
                    self.stdout.write(
                        f'  - [{reminder.kind}] user {reminder.user_id} | {reminder.title} | {reminder.body}'
                    )
                self.stdout.write(self.style.WARNING('\n--dry-run mode: Nothing sent.'))
                return

            try:
                notifier = build_notifier(remote)
            except PushNotConfiguredError as e:
                raise CommandError(str(e))
            report = dispatch_due_reminders(remote, notifier, today=today)
        except (ConnectivityUnavailableError, RemoteRejectedError) as e:
            raise CommandError(f'Reminder scan failed: {e}')
        finally:
            remote.close()

        self.stdout.write(
            self.style.SUCCESS(
                f'Reminders for {jalali_from_date(today)}: {report.sent} sent, '
                f'{report.skipped} already sent, {report.failed} failed'
            )
        )
