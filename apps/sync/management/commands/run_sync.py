"""
Management command running the background sync loop.

Probes the remote store every CONNECTIVITY_CHECK_INTERVAL seconds, drains the
queue every SYNC_INTERVAL seconds while it is reachable, and drains right away
when it comes back after an outage.

Usage:
    python manage.py run_sync
    python manage.py run_sync --once
"""

import time

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from apps.sync.services import build_reconciler


class Command(BaseCommand):
    help = 'Apply queued local changes to the remote store'

    def add_arguments(self, parser):
        parser.add_argument(
            '--once',
            action='store_true',
            help='Probe and drain a single time, then exit (for cron)',
        )

    def _report(self, report):
        line = (
            f'Applied {report.applied}, failed {report.failed}, '
            f'skipped {report.skipped}'
        )
        if report.aborted:
            self.stdout.write(self.style.WARNING(line + ' (remote store unreachable)'))
        else:
            self.stdout.write(self.style.SUCCESS(line))
        for notice in report.exhausted:
            self.stdout.write(self.style.ERROR(f'  ! {notice}'))

    def handle(self, *args, **options):
        with build_reconciler() as reconciler:
            if reconciler.remote is None:
                raise CommandError('REMOTE_STORE_URL is not set; nothing to sync with.')

            monitor = reconciler.monitor

            if options['once']:
                if not monitor.check(force=True):
                    self.stdout.write(self.style.WARNING('Remote store unreachable, queue left as is.'))
                    return
                self._report(reconciler.run())
                return

            self._loop(reconciler, monitor)

    def _loop(self, reconciler, monitor):
        check_interval = getattr(settings, 'CONNECTIVITY_CHECK_INTERVAL', 30)
        sync_interval = getattr(settings, 'SYNC_INTERVAL', 2)

        def on_change(reachable):
            self.stdout.write(f'Remote store {"reachable" if reachable else "unreachable"}')
            report = reconciler.on_connectivity_change(reachable)
            if report is not None:
                self._report(report)

        unsubscribe = monitor.subscribe(on_change)
        self.stdout.write(f'Sync loop started (probe every {check_interval}s, drain every {sync_interval}s)')

        last_check = None
        try:
            while True:
                now = time.monotonic()
                if last_check is None or now - last_check >= check_interval:
                    was_reachable = monitor.reachable
                    monitor.check(force=True)
                    last_check = now
                    if monitor.reachable and not was_reachable:
                        # on_change already drained
                        time.sleep(sync_interval)
                        continue
                if monitor.reachable:
                    report = reconciler.run()
                    if report.applied or report.failed:
                        self._report(report)
                    if report.aborted:
                        monitor.check(force=True)
                        last_check = time.monotonic()
                time.sleep(sync_interval)
        except KeyboardInterrupt:
            self.stdout.write('Sync loop stopped')
        finally:
            unsubscribe()
