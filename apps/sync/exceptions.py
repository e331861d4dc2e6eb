"""
Domain exceptions for the sync app.

Remote and connectivity errors are recovered by the reconciler. Only
QueueExhaustedError is meant to reach the user.
"""
from rest_framework.exceptions import APIException


class SyncServiceError(Exception):
    """Base exception for sync service errors."""
    pass


class ConnectivityUnavailableError(SyncServiceError):
    """Raised when the remote store cannot be reached (offline, timeout, DNS)."""
    pass


class RemoteRejectedError(SyncServiceError):
    """Raised when the remote store answers a request with an error."""

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class QueueExhaustedError(SyncServiceError):
    """An operation failed MAX_RETRIES times and needs user acknowledgement."""

    def __init__(self, operation):
        super().__init__(
            f"Operation {operation.operation_id} ({operation.kind} {operation.entity_type} "
            f"{operation.entity_id}) failed {operation.retries} times: {operation.last_error}"
        )
        self.operation = operation


class OperationNotFoundError(SyncServiceError):
    """Raised when a queued operation does not exist for the user."""
    pass


class OperationNotFailedError(SyncServiceError):
    """Raised when acknowledging an operation that has not failed permanently."""
    pass


class RemoteStoreUnavailable(APIException):
    """Remote store is not reachable."""
    status_code = 503
    default_detail = 'Remote store is not reachable.'
    default_code = 'remote_store_unavailable'
