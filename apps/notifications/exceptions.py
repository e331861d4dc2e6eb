"""
Domain exceptions for the notifications app.
"""
from rest_framework.exceptions import APIException


class NotificationsServiceError(Exception):
    """Base exception for notification service errors."""
    pass


class PushNotConfiguredError(NotificationsServiceError):
    """Raised when VAPID keys are missing from the settings."""
    pass


class NoSubscriptionsError(NotificationsServiceError):
    """Raised when a user has no registered push endpoints."""
    pass


class PushUnavailable(APIException):
    """Push delivery or subscription storage is not available."""
    status_code = 503
    default_detail = 'Push notifications are not available.'
    default_code = 'push_unavailable'
