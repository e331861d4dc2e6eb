"""
Queue draining and remote/local reconciliation.

Every queued operation goes ``pending -> in_flight`` and then is either
removed (applied), backed off (``failed_retryable``) or parked
(``failed_permanent``) until the user acknowledges it. The move to
``in_flight`` is an atomic claim, so concurrent drains (the ``run_sync``
loop and a web request) never apply the same operation or overtake each
other on one entity. Remote handlers are idempotent, so a drain that died
mid-flight is picked up again once its claim times out.
"""

from dataclasses import dataclass, field
from datetime import timedelta
import logging

from django.conf import settings
from django.utils import timezone

from apps.installments.services.payloads import remote_rows
from apps.sync.models import EntityType, OperationKind, OperationState

from . import remote as remote_module
from . import store
from .connectivity import get_monitor
from ..exceptions import (
    ConnectivityUnavailableError,
    QueueExhaustedError,
    RemoteRejectedError,
)


logger = logging.getLogger(__name__)

UPSERT_KINDS = (OperationKind.CREATE, OperationKind.UPDATE)


@dataclass
class SyncReport:
    """Outcome of one drain."""

    applied: int = 0
    failed: int = 0
    skipped: int = 0
    exhausted: list = field(default_factory=list)
    aborted: bool = False


@dataclass
class SweepReport:
    purged: list = field(default_factory=list)
    remote_deleted: int = 0


class SyncReconciler:
    """
    Applies the local queue to the remote store and merges remote state back.

    Args:
        remote: A RemoteStore (or anything with the same select/upsert/
            update/delete/fetch_installments methods). None means
            offline-only: drains abort immediately.
        max_retries: Attempts before an operation fails permanently.
        backoff_base: Seconds of the first backoff; doubled per retry.
        clock: Callable returning the current aware datetime.
        monitor: ConnectivityMonitor gating the read path. None means the
            remote store is assumed reachable.
    """

    def __init__(self, remote, *, max_retries=None, backoff_base=None, clock=timezone.now, monitor=None):
        self.remote = remote
        self.monitor = monitor
        self.max_retries = max_retries or getattr(settings, 'SYNC_MAX_RETRIES', 3)
        if backoff_base is None:
            backoff_base = getattr(settings, 'SYNC_BACKOFF_SECONDS', 2)
        self.backoff_base = backoff_base
        self.clock = clock

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        close = getattr(self.remote, 'close', None)
        if close is not None:
            close()

    # -------------------------------------------------------------------------
    # Draining
    # -------------------------------------------------------------------------

    @staticmethod
    def _is_due(operation, now):
        if operation.state == OperationState.FAILED_PERMANENT:
            return False
        if operation.state == OperationState.FAILED_RETRYABLE:
            return operation.next_attempt_at is None or operation.next_attempt_at <= now
        if operation.state == OperationState.IN_FLIGHT:
            # Held by another drain unless that drain died
            return store.is_claim_stale(operation, now)
        return True

    def _fold(self, queue, index, handled, now):
        """Collect the create/update run on one entity that starts at ``queue[index]``."""
        first = queue[index]
        batch = [first]
        if first.kind not in UPSERT_KINDS:
            return batch
        for operation in queue[index + 1:]:
            if operation.entity_id != first.entity_id or operation.pk in handled:
                continue
            if operation.kind not in UPSERT_KINDS or not self._is_due(operation, now):
                break
            batch.append(operation)
        return batch

    @staticmethod
    def _claim(batch, now):
        """Claim the longest prefix of ``batch`` that no other drain holds."""
        claimed = []
        for item in batch:
            if not store.claim(item, now=now):
                break
            claimed.append(item)
        return claimed

    def run(self, user=None) -> SyncReport:
        """
        Drain the queue once, in FIFO order.

        An entity whose earliest remaining operation cannot be applied
        (backing off, failed, or permanently failed) blocks its later
        operations; other entities carry on. Consecutive create/update
        operations on one entity are sent as a single upsert of the newest
        payload. A connectivity failure stops the drain and leaves the
        operation pending with its retry budget untouched.
        """
        report = SyncReport()
        queue = store.get_queue(user)
        if not queue:
            return report
        if self.remote is None:
            report.aborted = True
            return report

        logger.info("Draining %d queued operations", len(queue))
        now = self.clock()
        blocked = set()
        handled = set()

        for index, operation in enumerate(queue):
            if operation.pk in handled:
                continue
            if operation.entity_id in blocked or not self._is_due(operation, now):
                blocked.add(operation.entity_id)
                report.skipped += 1
                continue

            folded = self._fold(queue, index, handled, now)
            handled.update(item.pk for item in folded)
            batch = self._claim(folded, now)
            if len(batch) < len(folded):
                # Another drain owns the rest; later operations must wait for it
                blocked.add(operation.entity_id)
                report.skipped += len(folded) - len(batch)
            if not batch:
                continue

            try:
                self._apply(operation, batch[-1].payload)
            except ConnectivityUnavailableError as e:
                logger.warning("Remote store unreachable, stopping drain: %s", e)
                for item in batch:
                    store.release(item)
                report.aborted = True
                break
            except RemoteRejectedError as e:
                blocked.add(operation.entity_id)
                for item in batch[1:]:
                    store.release(item)
                store.record_failure(
                    operation,
                    e,
                    max_retries=self.max_retries,
                    backoff_base=self.backoff_base,
                    now=now,
                )
                report.failed += 1
                if operation.state == OperationState.FAILED_PERMANENT:
                    notice = QueueExhaustedError(operation)
                    logger.error("%s", notice)
                    report.exhausted.append(notice)
                else:
                    logger.warning(
                        "Operation %s rejected (attempt %d/%d): %s",
                        operation.operation_id, operation.retries, self.max_retries, e,
                    )
                continue

            store.complete(batch)
            if operation.kind == OperationKind.HARD_DELETE and operation.entity_type == EntityType.INSTALLMENT:
                store.forget_purged(operation.entity_id)
            report.applied += len(batch)

        logger.info(
            "Drain finished: %d applied, %d failed, %d skipped, %d exhausted%s",
            report.applied, report.failed, report.skipped, len(report.exhausted),
            ' (aborted)' if report.aborted else '',
        )
        return report

    # -------------------------------------------------------------------------
    # Remote handlers
    # -------------------------------------------------------------------------

    def _apply(self, operation, payload):
        handlers = {
            'create': self._apply_upsert,
            'update': self._apply_upsert,
            'toggle_payment': self._apply_toggle,
            'soft_delete': self._apply_soft_delete,
            'restore': self._apply_restore,
            'hard_delete': self._apply_hard_delete,
        }
        handlers[operation.kind](operation, payload)

    def _apply_upsert(self, operation, payload):
        installment_row, payment_rows = remote_rows(payload)
        installment_id = installment_row['id']
        self.remote.upsert('installments', [installment_row])

        existing = self.remote.select(
            'installment_payments',
            [('installment_id', 'eq', installment_id)],
            columns='id',
        )
        wanted = {str(row['id']) for row in payment_rows}
        stale = [str(row['id']) for row in existing if str(row['id']) not in wanted]
        if stale:
            self.remote.delete('installment_payments', [('id', 'in', stale)])
        self.remote.upsert('installment_payments', payment_rows)

    def _apply_toggle(self, operation, payload):
        # Writes the target state, so applying it twice changes nothing
        self.remote.update(
            'installment_payments',
            {'is_paid': payload['is_paid'], 'paid_date': payload.get('paid_date')},
            [('id', 'eq', payload['payment_id'])],
        )
        if payload.get('updated_at'):
            self.remote.update(
                'installments',
                {'updated_at': payload['updated_at']},
                [('id', 'eq', operation.entity_id)],
            )

    def _set_deleted_at(self, operation, deleted_at):
        if operation.entity_type == EntityType.PAYMENT:
            table, row_id = 'installment_payments', operation.target_id
        else:
            table, row_id = 'installments', operation.entity_id
        self.remote.update(table, {'deleted_at': deleted_at}, [('id', 'eq', row_id)])

    def _apply_soft_delete(self, operation, payload):
        self._set_deleted_at(operation, payload.get('deleted_at') or timezone.now().isoformat())

    def _apply_restore(self, operation, payload):
        self._set_deleted_at(operation, None)

    def _apply_hard_delete(self, operation, payload):
        if operation.entity_type == EntityType.PAYMENT:
            self.remote.delete('installment_payments', [('id', 'eq', operation.target_id)])
            return
        self.remote.delete('installment_payments', [('installment_id', 'eq', operation.entity_id)])
        self.remote.delete('installments', [('id', 'eq', operation.entity_id)])

    # -------------------------------------------------------------------------
    # Pull and merge
    # -------------------------------------------------------------------------

    def merge(self, user, rows) -> list:
        """
        Combine remote rows with the local snapshot.

        Remote rows win, except for installments with queued operations where
        the local version is newer by definition. Local-only installments
        survive only while they still have queued operations.
        """
        pending = store.pending_entity_ids(user)
        local = {payload['id']: payload for payload in store.local_snapshot(user)}

        merged = []
        seen = set()
        for row in rows:
            row_id = str(row['id'])
            seen.add(row_id)
            if row_id in pending and row_id in local:
                merged.append(local[row_id])
            else:
                merged.append(row)

        for row_id, payload in local.items():
            if row_id not in seen and row_id in pending:
                merged.append(payload)
        return merged

    def refresh(self, user) -> store.CacheSnapshot:
        """
        Drain the user's queue, pull their rows and rewrite the local cache.

        Raises:
            ConnectivityUnavailableError: No remote store, or it cannot be reached.
            RemoteRejectedError: The pull itself was rejected.
        """
        if self.remote is None:
            raise ConnectivityUnavailableError('No remote store configured')
        if self.run(user).aborted:
            raise ConnectivityUnavailableError('Remote store became unreachable while draining')
        rows = self.remote.fetch_installments(user.id)
        merged = self.merge(user, rows)
        logger.debug("Refreshed %s: %d remote rows, %d after merge", user, len(rows), len(merged))
        return store.set_cache(user, merged, now=self.clock())

    def _remote_reachable(self) -> bool:
        if self.monitor is None:
            return True
        # A known outage is rechecked at most once per monitor interval
        return self.monitor.reachable or self.monitor.check()

    def load_installments(self, user, reachable=None) -> list:
        """
        Local-first read path.

        A fresh cache is served as is; a stale one triggers a refresh when the
        remote store is reachable (``reachable``, or else the monitor's
        state). Remote trouble never blocks the read: the local snapshot is
        returned instead, and a connection failure marks the monitor
        unreachable so the following reads skip the remote store.
        """
        cached = store.get_cache(user, now=self.clock())
        if cached is not None:
            return cached.data
        if self.remote is None:
            return store.local_snapshot(user)
        if reachable is None:
            reachable = self._remote_reachable()
        if not reachable:
            return store.local_snapshot(user)
        try:
            return self.refresh(user).data
        except ConnectivityUnavailableError as e:
            if self.monitor is not None:
                self.monitor.report_unreachable()
            logger.warning("Serving local snapshot for %s, remote store unreachable: %s", user, e)
            return store.local_snapshot(user)
        except RemoteRejectedError as e:
            logger.warning("Serving local snapshot for %s, refresh failed: %s", user, e)
            return store.local_snapshot(user)

    # -------------------------------------------------------------------------
    # Retention and connectivity hooks
    # -------------------------------------------------------------------------

    def sweep_trash(self, now=None, user=None) -> SweepReport:
        """
        Enforce the trash retention window.

        Local installments soft-deleted more than ``TRASH_RETENTION_DAYS`` ago
        are purged (which queues their hard delete). Remote rows soft-deleted
        before the same cutoff are deleted directly when the store answers.
        """
        from apps.installments.services.trash import purge_expired

        now = now or self.clock()
        cutoff = now - timedelta(days=getattr(settings, 'TRASH_RETENTION_DAYS', 30))
        report = SweepReport(purged=purge_expired(cutoff=cutoff, user=user))

        if self.remote is None:
            return report

        filters = [('deleted_at', 'lt', cutoff)]
        if user is not None:
            filters.append(('user_id', 'eq', user.id))
        try:
            expired = self.remote.select('installments', filters, columns='id')
            ids = [str(row['id']) for row in expired]
            if ids:
                self.remote.delete('installment_payments', [('installment_id', 'in', ids)])
                self.remote.delete('installments', [('id', 'in', ids)])
            report.remote_deleted = len(ids)
        except (ConnectivityUnavailableError, RemoteRejectedError) as e:
            logger.warning("Remote trash sweep skipped: %s", e)

        logger.info(
            "Trash sweep: %d purged locally, %d deleted remotely",
            len(report.purged), report.remote_deleted,
        )
        return report

    def on_connectivity_change(self, reachable: bool):
        """Monitor listener: drain as soon as the remote store comes back."""
        if reachable:
            return self.run()
        return None


def build_reconciler(**kwargs) -> SyncReconciler:
    """
    Reconciler wired to the configured remote store (None when offline-only)
    and to the process-wide connectivity monitor.
    """
    kwargs.setdefault('monitor', get_monitor())
    return SyncReconciler(remote_module.get_remote_store(), **kwargs)
