"""Services for push delivery and the daily reminder scan."""

from .push import (
    DeliveryResult,
    PushNotifier,
    build_notifier,
    get_subscriptions,
    register_subscription,
    unregister_subscription,
)
from .reminders import (
    DispatchReport,
    Reminder,
    collect_due_reminders,
    dispatch_due_reminders,
)

__all__ = [
    # Push
    'DeliveryResult',
    'PushNotifier',
    'build_notifier',
    'get_subscriptions',
    'register_subscription',
    'unregister_subscription',
    # Reminders
    'DispatchReport',
    'Reminder',
    'collect_due_reminders',
    'dispatch_due_reminders',
]
