"""
Web Push delivery.

Subscriptions live in the remote store's ``push_subscriptions`` collection,
keyed by endpoint and scoped by ``user_id``, so every device a user signs in
from can be reached from the daily reminder scan.
"""

from dataclasses import dataclass
import json
import logging
from typing import List, Optional

from django.conf import settings
from django.utils import timezone
from pywebpush import WebPushException, webpush

from apps.sync.exceptions import ConnectivityUnavailableError, RemoteRejectedError

from ..exceptions import NoSubscriptionsError, PushNotConfiguredError


logger = logging.getLogger(__name__)

SUBSCRIPTIONS_TABLE = 'push_subscriptions'

# The push service says the subscription no longer exists
GONE_STATUSES = (404, 410)


@dataclass
class DeliveryResult:
    endpoint: str
    success: bool
    status_code: Optional[int] = None
    error: str = ''
    removed: bool = False


def register_subscription(remote, *, user_id, endpoint: str, p256dh: str, auth: str) -> dict:
    """
    Store a browser push subscription, replacing any row with the same endpoint.

    An endpoint moves to the new user when a different account signs in on
    the same browser.
    """
    row = {
        'user_id': str(user_id),
        'endpoint': endpoint,
        'p256dh': p256dh,
        'auth': auth,
        'updated_at': timezone.now().isoformat(),
    }
    remote.upsert(SUBSCRIPTIONS_TABLE, [row], on_conflict='endpoint')
    logger.info("Registered push endpoint for user %s", user_id)
    return row


def unregister_subscription(remote, *, endpoint: str, user_id=None) -> None:
    filters = [('endpoint', 'eq', endpoint)]
    if user_id is not None:
        filters.append(('user_id', 'eq', str(user_id)))
    remote.delete(SUBSCRIPTIONS_TABLE, filters)


def get_subscriptions(remote, user_id) -> list:
    return remote.select(SUBSCRIPTIONS_TABLE, [('user_id', 'eq', str(user_id))])


class PushNotifier:
    """
    Fan a notification out to every endpoint of a user.

    Args:
        remote: Remote store holding ``push_subscriptions``.
        vapid_private_key: VAPID private key (base64url or PEM).
        vapid_subject: ``mailto:`` or https contact sent in the VAPID claims.
        ttl: Seconds the push service should keep an undelivered message.
    """

    def __init__(self, remote, *, vapid_private_key: str, vapid_subject: str, ttl: int = 86400):
        self.remote = remote
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject
        self.ttl = ttl

    def _deliver(self, subscription: dict, data: str) -> DeliveryResult:
        endpoint = subscription['endpoint']
        try:
            webpush(
                subscription_info={
                    'endpoint': endpoint,
                    'keys': {'p256dh': subscription['p256dh'], 'auth': subscription['auth']},
                },
                data=data,
                vapid_private_key=self.vapid_private_key,
                # webpush fills in aud/exp, so every call gets its own claims
                vapid_claims={'sub': self.vapid_subject},
                ttl=self.ttl,
            )
        except WebPushException as e:
            status_code = e.response.status_code if e.response is not None else None
            result = DeliveryResult(endpoint, False, status_code=status_code, error=str(e))
            if status_code in GONE_STATUSES:
                self._forget(endpoint)
                result.removed = True
            logger.warning("Push to %s failed (%s): %s", endpoint, status_code, e)
            return result
        return DeliveryResult(endpoint, True, status_code=201)

    def _forget(self, endpoint):
        try:
            unregister_subscription(self.remote, endpoint=endpoint)
        except (ConnectivityUnavailableError, RemoteRejectedError) as e:
            logger.warning("Could not remove expired endpoint %s: %s", endpoint, e)
        else:
            logger.info("Removed expired push endpoint %s", endpoint)

    def send(self, subscriptions, title: str, body: str, url: str = '/', tag: Optional[str] = None) -> List[DeliveryResult]:
        """Send one notification to the given subscription rows."""
        message = {'title': title, 'body': body, 'url': url or '/'}
        if tag:
            message['tag'] = tag
            message['renotify'] = True
        data = json.dumps(message, ensure_ascii=False)
        return [self._deliver(subscription, data) for subscription in subscriptions]

    def send_to_user(self, user_id, title: str, body: str, url: str = '/', tag: Optional[str] = None) -> List[DeliveryResult]:
        """
        Send a notification to all of a user's devices.

        Returns:
            One DeliveryResult per endpoint

        Raises:
            NoSubscriptionsError: The user has no registered endpoint
            ConnectivityUnavailableError: Subscriptions could not be loaded
            RemoteRejectedError: Subscriptions could not be loaded
        """
        subscriptions = get_subscriptions(self.remote, user_id)
        if not subscriptions:
            raise NoSubscriptionsError(f"No push subscriptions for user {user_id}")
        return self.send(subscriptions, title, body, url=url, tag=tag)


def build_notifier(remote) -> PushNotifier:
    """
    Notifier configured from the VAPID settings.

    Raises:
        PushNotConfiguredError: VAPID_PRIVATE_KEY is not set
    """
    private_key = getattr(settings, 'VAPID_PRIVATE_KEY', '')
    if not private_key:
        raise PushNotConfiguredError('VAPID_PRIVATE_KEY is not set')
    return PushNotifier(
        remote,
        vapid_private_key=private_key,
        vapid_subject=getattr(settings, 'VAPID_SUBJECT', 'mailto:admin@example.com'),
    )
