"""
Domain exceptions for the installments app.

Service-level errors are plain exceptions caught by the views and turned into
HTTP responses.
"""
from apps.jalali.exceptions import InvalidDateError


class InstallmentServiceError(Exception):
    """Base exception for installment service errors."""
    pass


class InstallmentNotFoundError(InstallmentServiceError):
    """Raised when an installment does not exist or belongs to another user."""
    pass


class PaymentNotFoundError(InstallmentServiceError):
    """Raised when a payment does not belong to the given installment."""
    pass


class InvalidLifecycleTransitionError(InstallmentServiceError):
    """Raised for moves the active -> soft_deleted -> purged lifecycle forbids."""
    pass


class InvalidScheduleError(InstallmentServiceError, InvalidDateError):
    """Raised when schedule parameters cannot produce a payment plan."""
    pass


class InvalidRecurrenceError(InvalidScheduleError):
    """Raised for a recurrence unit outside daily/weekly/monthly/yearly/never."""
    pass
