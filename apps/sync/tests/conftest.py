from unittest.mock import patch

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from apps.accounts.models import User
from apps.installments.services import create_installment
from apps.sync.services import SyncReconciler, reset_monitor

from .fakes import FakeRemoteStore


@pytest.fixture(autouse=True)
def fresh_monitor():
    """Every test starts without a process-wide connectivity monitor."""
    reset_monitor()
    yield
    reset_monitor()


@pytest.fixture(autouse=True)
def offline_by_default(settings):
    settings.REMOTE_STORE_URL = ''


@pytest.fixture
def remote():
    return FakeRemoteStore()


@pytest.fixture
def reconciler(remote):
    """Reconciler over the in-memory store, retrying immediately."""
    return SyncReconciler(remote, max_retries=3, backoff_base=0)


@pytest.fixture
def configured_remote(remote):
    """Make build_reconciler() hand out the in-memory store."""
    with patch('apps.sync.services.remote.get_remote_store', return_value=remote):
        yield remote


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def user(db):
    return User.objects.create_user(
        email='testuser@example.com',
        password='TestPass123!',
        display_name='Test User',
    )


@pytest.fixture
def other_user(db):
    return User.objects.create_user(
        email='otheruser@example.com',
        password='OtherPass123!',
    )


@pytest.fixture
def authenticated_client(api_client, user):
    """Return an authenticated API client using JWT."""
    refresh = RefreshToken.for_user(user)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client


@pytest.fixture
def make_installment(user):
    """Factory creating installments (and their queued create) for ``user``."""

    def make(creditor_name='فروشگاه', count=3, recurrence='monthly', owner=None, **kwargs):
        kwargs.setdefault('start_date_jalali', '1403/01/01')
        kwargs.setdefault('total_amount', 3_000_000)
        return create_installment(
            owner=owner or user,
            creditor_name=creditor_name,
            installment_count=count,
            recurrence=recurrence,
            **kwargs,
        )

    return make
