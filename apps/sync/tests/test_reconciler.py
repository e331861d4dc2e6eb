from datetime import timedelta
import uuid

import pytest
from django.utils import timezone

from apps.installments.models import Installment, Lifecycle
from apps.installments.services import (
    purge_installment,
    soft_delete_installment,
    soft_delete_payment,
    toggle_payment,
    update_installment,
)
from apps.sync.exceptions import (
    ConnectivityUnavailableError,
    QueueExhaustedError,
    RemoteRejectedError,
)
from apps.sync.models import OperationState, SyncOperation
from apps.sync.services import ConnectivityMonitor, SyncReconciler, store


def _remote_installment(remote, installment):
    return remote.tables['installments'].get(str(installment.id))


def _remote_payments(remote, installment):
    return [
        row for row in remote.rows('installment_payments')
        if row['installment_id'] == str(installment.id)
    ]


# =============================================================================
# Draining
# =============================================================================

@pytest.mark.django_db
class TestDrain:

    def test_empty_queue(self, reconciler, remote):
        report = reconciler.run()
        assert report.applied == 0
        assert remote.calls == []

    def test_creates_and_update_reach_remote(self, reconciler, remote, make_installment, user):
        first = make_installment('اول')
        second = make_installment('دوم')
        update_installment(installment_id=first.id, user=user, creditor_name='اول (ویرایش)')

        report = reconciler.run()

        assert report.applied == 3
        assert store.get_queue() == []
        assert _remote_installment(remote, first)['creditor_name'] == 'اول (ویرایش)'
        assert _remote_installment(remote, second)['creditor_name'] == 'دوم'
        assert len(_remote_payments(remote, first)) == 3
        # Folded: one installment upsert per entity
        assert remote.calls.count(('upsert', 'installments')) == 2

    def test_remote_rows_have_no_jalali_columns(self, reconciler, remote, make_installment):
        installment = make_installment()
        reconciler.run()

        row = _remote_installment(remote, installment)
        assert 'start_date_jalali' not in row
        assert row['start_date'] == '2024-03-20'
        assert 'due_date_jalali' not in _remote_payments(remote, installment)[0]

    def test_update_removes_dropped_remote_payments(self, reconciler, remote, make_installment, user):
        installment = make_installment(count=5)
        reconciler.run()
        assert len(_remote_payments(remote, installment)) == 5

        update_installment(installment_id=installment.id, user=user, installment_count=2)
        reconciler.run()

        assert len(_remote_payments(remote, installment)) == 2

    def test_interrupted_in_flight_operation_is_retried(self, reconciler, remote, make_installment):
        installment = make_installment()
        SyncOperation.objects.update(state=OperationState.IN_FLIGHT)

        report = reconciler.run()

        assert report.applied == 1
        assert _remote_installment(remote, installment) is not None

    def test_operation_held_by_live_drain_is_skipped(self, reconciler, remote, make_installment):
        make_installment()
        SyncOperation.objects.update(state=OperationState.IN_FLIGHT, claimed_at=timezone.now())

        report = reconciler.run()

        assert report.applied == 0
        assert report.skipped == 1
        assert remote.calls == []

    def test_stale_claim_is_taken_over(self, reconciler, remote, make_installment, settings):
        settings.SYNC_CLAIM_TIMEOUT_SECONDS = 60
        installment = make_installment()
        SyncOperation.objects.update(
            state=OperationState.IN_FLIGHT,
            claimed_at=timezone.now() - timedelta(minutes=5),
        )

        report = reconciler.run()

        assert report.applied == 1
        assert _remote_installment(remote, installment) is not None

    def test_concurrent_drain_waits_for_in_flight_operation(self, reconciler, remote, make_installment, user):
        installment = make_installment('v1')
        second_drain = SyncReconciler(remote, max_retries=3, backoff_base=0)
        second_reports = []
        upsert = remote.upsert

        def upsert_while_user_edits(table, rows, on_conflict='id'):
            # The user edits and another drain starts while v1 is on the wire
            if table == 'installments' and not second_reports:
                update_installment(installment_id=installment.id, user=user, creditor_name='v2')
                second_reports.append(second_drain.run())
            upsert(table, rows, on_conflict=on_conflict)

        remote.upsert = upsert_while_user_edits
        first = reconciler.run()

        assert second_reports[0].applied == 0
        assert second_reports[0].skipped == 2
        assert first.applied == 1
        assert _remote_installment(remote, installment)['creditor_name'] == 'v1'
        assert [op.kind for op in store.get_queue()] == ['update']

        last = reconciler.run()

        assert last.applied == 1
        assert store.get_queue() == []
        assert _remote_installment(remote, installment)['creditor_name'] == 'v2'
        assert first.applied + second_reports[0].applied + last.applied == 2

    def test_offline_only_aborts(self, make_installment):
        make_installment()
        report = SyncReconciler(None).run()

        assert report.aborted is True
        assert SyncOperation.objects.count() == 1


@pytest.mark.django_db
class TestFailures:

    def test_rejection_blocks_only_that_entity(self, reconciler, remote, make_installment, user):
        blocked = make_installment('A')
        payment = blocked.payments.first()
        toggle_payment(installment_id=blocked.id, payment_id=payment.id, user=user)
        other = make_installment('B')
        remote.fail_next(RemoteRejectedError('duplicate key', status_code=409))

        report = reconciler.run()

        assert report.failed == 1
        assert report.skipped == 1
        assert report.applied == 1
        assert _remote_installment(remote, other) is not None
        assert _remote_installment(remote, blocked) is None

        failed = SyncOperation.objects.get(entity_id=blocked.id, kind='create')
        assert failed.state == OperationState.FAILED_RETRYABLE
        assert failed.retries == 1
        assert 'duplicate key' in failed.last_error
        toggle = SyncOperation.objects.get(kind='toggle_payment')
        assert toggle.state == OperationState.PENDING

    def test_backoff_delays_next_attempt(self, remote, make_installment):
        make_installment()
        reconciler = SyncReconciler(remote, max_retries=3, backoff_base=60)
        remote.fail_next(RemoteRejectedError('nope'))
        reconciler.run()

        report = reconciler.run()

        assert report.skipped == 1
        assert report.applied == 0

    def test_recovers_after_transient_rejection(self, reconciler, remote, make_installment):
        installment = make_installment()
        remote.fail_next(RemoteRejectedError('try later', status_code=503))
        reconciler.run()

        report = reconciler.run()

        assert report.applied == 1
        assert _remote_installment(remote, installment) is not None

    def test_exhausted_operation_is_kept_and_reported(self, reconciler, remote, make_installment, user):
        installment = make_installment()
        for _ in range(3):
            remote.fail_next(RemoteRejectedError('bad row', status_code=400))
            report = reconciler.run()

        assert len(report.exhausted) == 1
        assert isinstance(report.exhausted[0], QueueExhaustedError)
        op = SyncOperation.objects.get()
        assert op.state == OperationState.FAILED_PERMANENT
        assert op.retries == 3
        assert store.pending_count(user) == 0
        assert store.failed_operations(user) == [op]

        # Stays put, and keeps blocking its entity, until acknowledged
        update_installment(installment_id=installment.id, user=user, notes='x')
        report = reconciler.run()
        assert report.applied == 0
        assert SyncOperation.objects.count() == 2

        store.acknowledge_failure(op, retry=True)
        report = reconciler.run()
        assert report.applied == 2
        assert _remote_installment(remote, installment)['notes'] == 'x'

    def test_connectivity_loss_aborts_without_spending_retries(self, reconciler, remote, make_installment):
        make_installment('A')
        make_installment('B')
        remote.fail_next(ConnectivityUnavailableError('timed out'))

        report = reconciler.run()

        assert report.aborted is True
        assert report.applied == 0
        ops = list(SyncOperation.objects.all())
        assert all(op.state == OperationState.PENDING and op.retries == 0 for op in ops)

        assert reconciler.run().applied == 2


@pytest.mark.django_db
class TestIdempotentHandlers:

    def test_toggle_replayed_twice(self, reconciler, remote, make_installment, user):
        installment = make_installment()
        reconciler.run()
        payment = installment.payments.first()
        toggle_payment(installment_id=installment.id, payment_id=payment.id, user=user)
        payload = SyncOperation.objects.get().payload

        reconciler.run()
        store.add_to_queue(
            user=user,
            kind='toggle_payment',
            entity_type='payment',
            entity_id=installment.id,
            target_id=payment.id,
            payload=payload,
        )
        reconciler.run()

        row = remote.tables['installment_payments'][str(payment.id)]
        assert row['is_paid'] is True
        assert row['paid_date'] == payload['paid_date']
        assert len(_remote_payments(remote, installment)) == 3

    def test_create_replayed_twice(self, reconciler, remote, make_installment, user):
        installment = make_installment()
        payload = SyncOperation.objects.get().payload
        reconciler.run()
        store.add_to_queue(user=user, kind='create', entity_id=installment.id, payload=payload)

        reconciler.run()

        assert len(remote.rows('installments')) == 1
        assert len(_remote_payments(remote, installment)) == 3

    def test_soft_delete_and_payment_soft_delete(self, reconciler, remote, make_installment, user):
        installment = make_installment()
        payment = installment.payments.first()
        soft_delete_payment(installment_id=installment.id, payment_id=payment.id, user=user)
        reconciler.run()
        assert remote.tables['installment_payments'][str(payment.id)]['deleted_at'] is not None

        soft_delete_installment(installment_id=installment.id, user=user)
        reconciler.run()
        assert _remote_installment(remote, installment)['deleted_at'] is not None

    def test_hard_delete_drops_tombstone(self, reconciler, remote, make_installment, user):
        installment = make_installment()
        soft_delete_installment(installment_id=installment.id, user=user)
        purge_installment(installment_id=installment.id, user=user)

        reconciler.run()

        assert _remote_installment(remote, installment) is None
        assert _remote_payments(remote, installment) == []
        assert not Installment.objects.filter(id=installment.id).exists()

    def test_hard_delete_of_missing_row(self, reconciler, remote, user):
        store.add_to_queue(user=user, kind='hard_delete', entity_id=uuid.uuid4(), payload={})
        assert reconciler.run().applied == 1


# =============================================================================
# Pull and merge
# =============================================================================

@pytest.mark.django_db
class TestRefresh:

    def test_refresh_pulls_rows_created_elsewhere(self, reconciler, remote, user):
        remote_id = str(uuid.uuid4())
        remote.upsert('installments', [{
            'id': remote_id,
            'user_id': str(user.id),
            'creditor_name': 'از دستگاه دیگر',
            'total_amount': 1000,
            'start_date': '2024-03-20',
            'installment_count': 1,
            'recurrence': 'never',
            'installment_amount': 1000,
            'reminder_days': 2,
            'created_at': '2024-03-20T08:00:00+00:00',
            'updated_at': '2024-03-20T08:00:00+00:00',
            'deleted_at': None,
        }])

        snapshot = reconciler.refresh(user)

        assert [row['id'] for row in snapshot.data] == [remote_id]
        assert Installment.objects.get(id=remote_id).start_date_jalali == '1403/01/01'
        assert store.get_cache(user) is not None

    def test_pending_local_changes_win(self, reconciler, remote, make_installment, user):
        installment = make_installment()
        reconciler.run()
        remote.tables['installments'][str(installment.id)]['creditor_name'] = 'remote'
        update_installment(installment_id=installment.id, user=user, creditor_name='local')

        merged = reconciler.merge(user, remote.fetch_installments(user.id))

        assert merged[0]['creditor_name'] == 'local'

    def test_remote_wins_without_pending_changes(self, reconciler, remote, make_installment, user):
        installment = make_installment()
        reconciler.run()
        remote.tables['installments'][str(installment.id)]['creditor_name'] = 'remote'

        reconciler.refresh(user)

        installment.refresh_from_db()
        assert installment.creditor_name == 'remote'

    def test_local_only_rows_need_pending_operations(self, reconciler, user, make_installment):
        make_installment()
        local = store.local_snapshot(user)

        assert reconciler.merge(user, []) == local
        SyncOperation.objects.all().delete()
        assert reconciler.merge(user, []) == []

    def test_refresh_without_remote(self, user):
        with pytest.raises(ConnectivityUnavailableError):
            SyncReconciler(None).refresh(user)


@pytest.mark.django_db
class TestLoadInstallments:

    def test_fresh_cache_skips_remote(self, reconciler, remote, make_installment, user):
        make_installment()
        store.set_cache(user, store.local_snapshot(user))
        remote.calls.clear()

        data = reconciler.load_installments(user)

        assert len(data) == 1
        assert remote.calls == []

    def test_stale_cache_refreshes(self, reconciler, remote, make_installment, user):
        make_installment()

        data = reconciler.load_installments(user)

        assert len(data) == 1
        assert remote.rows('installments')
        assert store.get_cache(user) is not None

    def test_remote_trouble_serves_local_snapshot(self, reconciler, remote, make_installment, user):
        make_installment()
        remote.fail_next(ConnectivityUnavailableError('down'))
        SyncOperation.objects.all().delete()

        data = reconciler.load_installments(user)

        assert len(data) == 1

    def test_unreachable_skips_refresh(self, reconciler, remote, make_installment, user):
        make_installment()
        data = reconciler.load_installments(user, reachable=False)

        assert len(data) == 1
        assert remote.calls == []

    def test_monitor_outage_skips_remote(self, remote, make_installment, user):
        make_installment()
        remote.reachable = False
        monitor = ConnectivityMonitor(probe=remote.probe, link_check=lambda: False, min_interval=60)
        reconciler = SyncReconciler(remote, monitor=monitor)

        data = reconciler.load_installments(user)

        assert len(data) == 1
        assert remote.calls == []
        assert store.get_cache(user) is None

    def test_connection_failure_marks_monitor_unreachable(self, remote, make_installment, user):
        make_installment()
        SyncOperation.objects.all().delete()
        monitor = ConnectivityMonitor(probe=remote.probe, min_interval=60, clock=lambda: 100.0)
        reconciler = SyncReconciler(remote, monitor=monitor)
        remote.fail_next(ConnectivityUnavailableError('timed out'))

        assert len(reconciler.load_installments(user)) == 1
        assert monitor.reachable is False
        calls = len(remote.calls)

        # Within the check interval the next read stays local
        assert len(reconciler.load_installments(user)) == 1
        assert len(remote.calls) == calls

    def test_aborted_drain_does_not_pull(self, remote, make_installment, user):
        make_installment()
        monitor = ConnectivityMonitor(probe=remote.probe, min_interval=60, clock=lambda: 100.0)
        reconciler = SyncReconciler(remote, monitor=monitor)
        remote.fail_next(ConnectivityUnavailableError('timed out'))

        data = reconciler.load_installments(user)

        assert len(data) == 1
        assert remote.calls == [('upsert', 'installments')]
        assert monitor.reachable is False
        assert SyncOperation.objects.get().state == OperationState.PENDING

    def test_recovered_monitor_refreshes(self, remote, make_installment, user):
        make_installment()
        monitor = ConnectivityMonitor(probe=remote.probe, link_check=lambda: False, min_interval=5)
        reconciler = SyncReconciler(remote, monitor=monitor)

        reconciler.load_installments(user)

        assert monitor.reachable is True
        assert remote.rows('installments')
        assert store.get_cache(user) is not None


# =============================================================================
# Retention and connectivity hooks
# =============================================================================

@pytest.mark.django_db
class TestSweepTrash:

    def test_purges_expired_locally_and_remotely(self, reconciler, remote, make_installment, user):
        now = timezone.now()
        old = make_installment('قدیمی')
        recent = make_installment('جدید')
        reconciler.run()
        old.soft_delete(at=now - timedelta(days=40))
        recent.soft_delete(at=now - timedelta(days=3))
        remote.tables['installments'][str(old.id)]['deleted_at'] = (now - timedelta(days=40)).isoformat()
        remote.tables['installments'][str(recent.id)]['deleted_at'] = (now - timedelta(days=3)).isoformat()

        report = reconciler.sweep_trash(now=now)

        assert report.purged == [str(old.id)]
        assert report.remote_deleted == 1
        assert _remote_installment(remote, old) is None
        assert _remote_installment(remote, recent) is not None
        assert Installment.objects.get(id=old.id).lifecycle == Lifecycle.PURGED
        assert SyncOperation.objects.filter(kind='hard_delete', entity_id=old.id).exists()

    def test_remote_failure_keeps_local_sweep(self, reconciler, remote, make_installment):
        now = timezone.now()
        old = make_installment()
        old.soft_delete(at=now - timedelta(days=40))
        remote.fail_next(ConnectivityUnavailableError('down'))

        report = reconciler.sweep_trash(now=now)

        assert report.purged == [str(old.id)]
        assert report.remote_deleted == 0


@pytest.mark.django_db
class TestConnectivityHook:

    def test_drains_when_reachable_again(self, reconciler, remote, make_installment):
        make_installment()

        report = reconciler.on_connectivity_change(True)

        assert report.applied == 1

    def test_nothing_when_unreachable(self, reconciler, make_installment):
        make_installment()
        assert reconciler.on_connectivity_change(False) is None
        assert SyncOperation.objects.count() == 1

    def test_context_manager_closes_remote(self, remote):
        with SyncReconciler(remote):
            pass
        assert remote.closed is True
