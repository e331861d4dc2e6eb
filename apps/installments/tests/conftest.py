import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from apps.accounts.models import User
from apps.installments.services import create_installment
from apps.sync.services import reset_monitor


@pytest.fixture(autouse=True)
def fresh_monitor():
    """Every test starts without a process-wide connectivity monitor."""
    reset_monitor()
    yield
    reset_monitor()


@pytest.fixture(autouse=True)
def offline_only(settings):
    """No remote store: every test runs against the local tables only."""
    settings.REMOTE_STORE_URL = ''


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def user(db):
    """Create and return a test user."""
    return User.objects.create_user(
        email='testuser@example.com',
        password='TestPass123!',
        display_name='Test User',
    )


@pytest.fixture
def other_user(db):
    """Create and return another test user."""
    return User.objects.create_user(
        email='otheruser@example.com',
        password='OtherPass123!',
        display_name='Other User',
    )


@pytest.fixture
def authenticated_client(api_client, user):
    """Return an authenticated API client using JWT."""
    refresh = RefreshToken.for_user(user)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client


@pytest.fixture
def other_client(other_user):
    """Return an API client authenticated as other_user."""
    client = APIClient()
    refresh = RefreshToken.for_user(other_user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def installment(user):
    """Twelve monthly payments of 1,000,000 starting 1403/01/01."""
    return create_installment(
        owner=user,
        creditor_name='فروشگاه دیجی',
        total_amount=12_000_000,
        start_date_jalali='1403/01/01',
        installment_count=12,
        recurrence='monthly',
        item_description='گوشی',
    )


@pytest.fixture
def single_installment(user):
    """One-off debt (recurrence never)."""
    return create_installment(
        owner=user,
        creditor_name='علی',
        total_amount=5_000_000,
        start_date_jalali='1403/05/10',
        recurrence='never',
    )
