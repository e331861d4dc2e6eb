from datetime import date

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from apps.accounts.models import User
from apps.installments.services import create_installment
from apps.sync.services import reset_monitor


# 1403/05/11 (11 Mordad)
TODAY = date(2024, 8, 1)


@pytest.fixture(autouse=True)
def fresh_monitor():
    """Every test starts without a process-wide connectivity monitor."""
    reset_monitor()
    yield
    reset_monitor()


@pytest.fixture(autouse=True)
def offline_only(settings):
    settings.REMOTE_STORE_URL = ''


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def analytics_user(db):
    return User.objects.create_user(
        email='analytics_user@example.com',
        password='TestPass123!',
        display_name='Analytics User',
    )


@pytest.fixture
def analytics_outsider(db):
    """A user whose installments must never show up in the main user's figures."""
    return User.objects.create_user(
        email='analytics_outsider@example.com',
        password='TestPass123!',
    )


@pytest.fixture
def analytics_user_client(api_client, analytics_user):
    refresh = RefreshToken.for_user(analytics_user)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client


@pytest.fixture
def monthly_loan(analytics_user):
    """3 x 1,000,000 monthly: due 2024-07-26 (overdue), 2024-08-26, 2024-09-26."""
    return create_installment(
        owner=analytics_user,
        creditor_name='بانک ملت',
        total_amount=3_000_000,
        start_date_jalali='1403/05/05',
        installment_count=3,
        recurrence='monthly',
    )


@pytest.fixture
def weekly_purchase(analytics_user):
    """3 x 100,000 weekly: due 2024-08-03, 2024-08-10, 2024-08-17."""
    return create_installment(
        owner=analytics_user,
        creditor_name='فروشگاه دیجی',
        total_amount=300_000,
        start_date_jalali='1403/05/13',
        installment_count=3,
        recurrence='weekly',
    )


@pytest.fixture
def outsider_installment(analytics_outsider):
    return create_installment(
        owner=analytics_outsider,
        creditor_name='غریبه',
        total_amount=9_000_000,
        start_date_jalali='1403/05/12',
        installment_count=1,
        recurrence='never',
    )
