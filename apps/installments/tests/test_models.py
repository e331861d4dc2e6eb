from datetime import date, time

import pytest

from apps.installments.models import Installment, Lifecycle, Payment
from apps.installments.exceptions import InvalidLifecycleTransitionError


@pytest.mark.django_db
class TestInstallmentSave:

    def test_never_forces_single_payment(self, user):
        installment = Installment.objects.create(
            owner=user,
            creditor_name='X',
            total_amount=900,
            start_date_jalali='1403/01/01',
            installment_count=6,
            recurrence='never',
        )
        assert installment.installment_count == 1
        assert installment.installment_amount == 900

    def test_amount_defaults_to_ceiling_split(self, user):
        installment = Installment.objects.create(
            owner=user,
            creditor_name='X',
            total_amount=1000,
            start_date_jalali='1403/01/01',
            installment_count=3,
        )
        assert installment.installment_amount == 334

    def test_gregorian_start_derives_jalali(self, user):
        installment = Installment.objects.create(
            owner=user,
            creditor_name='X',
            total_amount=1000,
            start_date=date(2024, 3, 20),
        )
        assert installment.start_date_jalali == '1403/01/01'

    def test_jalali_start_derives_gregorian(self, user):
        installment = Installment.objects.create(
            owner=user,
            creditor_name='X',
            total_amount=1000,
            start_date_jalali='1403/01/01',
            payment_time=time(9, 30),
        )
        assert installment.start_date == date(2024, 3, 20)

    def test_payment_due_dates_agree(self, installment):
        payment = installment.payments.first()
        assert payment.due_date == date(2024, 3, 20)
        assert payment.due_date_jalali == '1403/01/01'


@pytest.mark.django_db
class TestLifecycle:

    def test_soft_delete_stamps_deleted_at(self, installment):
        installment.soft_delete()

        installment.refresh_from_db()
        assert installment.lifecycle == Lifecycle.SOFT_DELETED
        assert installment.deleted_at is not None
        assert not installment.is_active

    def test_restore_clears_deleted_at(self, installment):
        installment.soft_delete()
        installment.restore()

        installment.refresh_from_db()
        assert installment.is_active
        assert installment.deleted_at is None

    def test_purge_requires_trash(self, installment):
        with pytest.raises(InvalidLifecycleTransitionError):
            installment.purge()

    def test_purge_from_trash(self, installment):
        installment.soft_delete()
        installment.purge()

        assert Installment.objects.get(id=installment.id).lifecycle == Lifecycle.PURGED
        assert not Installment.objects.visible().filter(id=installment.id).exists()

    def test_double_soft_delete_rejected(self, installment):
        installment.soft_delete()
        with pytest.raises(InvalidLifecycleTransitionError):
            installment.soft_delete()

    def test_restore_active_rejected(self, installment):
        with pytest.raises(InvalidLifecycleTransitionError):
            installment.restore()

    def test_payment_lifecycle(self, installment):
        payment = installment.payments.first()
        payment.soft_delete()

        assert Payment.objects.get(id=payment.id).is_soft_deleted
        assert installment.live_payments().count() == 11


@pytest.mark.django_db
class TestQuerySet:

    def test_for_user_scopes_rows(self, installment, other_user):
        assert Installment.objects.for_user(other_user).count() == 0

    def test_active_and_trashed(self, installment, single_installment):
        single_installment.soft_delete()

        assert list(Installment.objects.active()) == [installment]
        assert list(Installment.objects.trashed()) == [single_installment]
        assert Installment.objects.visible().count() == 2
