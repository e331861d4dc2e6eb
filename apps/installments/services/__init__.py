"""Services for installments business logic."""

from ..exceptions import (
    InstallmentServiceError,
    InstallmentNotFoundError,
    PaymentNotFoundError,
    InvalidLifecycleTransitionError,
    InvalidScheduleError,
    InvalidRecurrenceError,
)
from .schedule import ScheduledPayment, generate_payments, reconcile_schedule, schedule_dates
from .payloads import installment_payload, payment_payload, remote_rows, apply_payload
from .installment_management import (
    get_installment,
    get_user_installments,
    get_trash,
    create_installment,
    update_installment,
    toggle_payment,
    soft_delete_installment,
    restore_installment,
    soft_delete_payment,
    restore_payment,
)
from .trash import purge_installment, empty_trash, purge_expired

__all__ = [
    # Exceptions
    'InstallmentServiceError',
    'InstallmentNotFoundError',
    'PaymentNotFoundError',
    'InvalidLifecycleTransitionError',
    'InvalidScheduleError',
    'InvalidRecurrenceError',
    # Schedule
    'ScheduledPayment',
    'generate_payments',
    'reconcile_schedule',
    'schedule_dates',
    # Payloads
    'installment_payload',
    'payment_payload',
    'remote_rows',
    'apply_payload',
    # Services
    'get_installment',
    'get_user_installments',
    'get_trash',
    'create_installment',
    'update_installment',
    'toggle_payment',
    'soft_delete_installment',
    'restore_installment',
    'soft_delete_payment',
    'restore_payment',
    'purge_installment',
    'empty_trash',
    'purge_expired',
]
