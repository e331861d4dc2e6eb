from datetime import date
from unittest.mock import patch
import uuid

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from apps.accounts.models import User
from apps.notifications.services import PushNotifier, register_subscription
from apps.sync.tests.fakes import FakeRemoteStore


TODAY = date(2024, 8, 1)


@pytest.fixture(autouse=True)
def push_settings(settings):
    settings.REMOTE_STORE_URL = ''
    settings.VAPID_PRIVATE_KEY = 'test-private-key'
    settings.VAPID_PUBLIC_KEY = 'test-public-key'
    settings.VAPID_SUBJECT = 'mailto:test@example.com'
    settings.CRON_SECRET = 'cron-secret'


@pytest.fixture
def remote():
    return FakeRemoteStore()


@pytest.fixture
def configured_remote(remote):
    with patch('apps.sync.services.remote.get_remote_store', return_value=remote):
        yield remote


@pytest.fixture
def mock_webpush():
    with patch('apps.notifications.services.push.webpush') as mocked:
        yield mocked


@pytest.fixture
def notifier(remote):
    return PushNotifier(remote, vapid_private_key='test-private-key', vapid_subject='mailto:test@example.com')


@pytest.fixture
def add_subscription(remote):
    def add(user_id, endpoint='https://push.example.com/device-1'):
        return register_subscription(remote, user_id=user_id, endpoint=endpoint, p256dh='p256dh-key', auth='auth-key')

    return add


@pytest.fixture
def seed_installment(remote):
    """Put an installment and its payments straight into the remote tables."""

    def seed(user_id, payments, creditor_name='فروشگاه دیجی', reminder_days=3, deleted_at=None):
        installment_id = str(uuid.uuid4())
        remote.tables['installments'][installment_id] = {
            'id': installment_id,
            'user_id': str(user_id),
            'creditor_name': creditor_name,
            'reminder_days': reminder_days,
            'deleted_at': deleted_at,
        }
        rows = []
        for due_date, amount, *rest in payments:
            is_paid = rest[0] if rest else False
            payment_id = str(uuid.uuid4())
            row = {
                'id': payment_id,
                'installment_id': installment_id,
                'due_date': due_date.isoformat(),
                'amount': amount,
                'is_paid': is_paid,
                'deleted_at': None,
            }
            remote.tables['installment_payments'][payment_id] = row
            rows.append(row)
        return installment_id, rows

    return seed


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def user(db):
    return User.objects.create_user(
        email='testuser@example.com',
        password='TestPass123!',
    )


@pytest.fixture
def authenticated_client(api_client, user):
    refresh = RefreshToken.for_user(user)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client
