"""Services for local cache, sync queue and remote reconciliation."""

from .store import (
    CacheSnapshot,
    get_cache,
    set_cache,
    invalidate_cache,
    local_snapshot,
    add_to_queue,
    get_queue,
    get_operation,
    pending_count,
    pending_entity_ids,
    failed_operations,
    acknowledge_failure,
    forget_purged,
)
from .remote import RemoteStore, get_remote_store
from .reconciler import SyncReconciler, SyncReport, SweepReport, build_reconciler
from .connectivity import ConnectivityMonitor, build_monitor, dns_link_check, get_monitor, reset_monitor

__all__ = [
    # Store
    'CacheSnapshot',
    'get_cache',
    'set_cache',
    'invalidate_cache',
    'local_snapshot',
    'add_to_queue',
    'get_queue',
    'get_operation',
    'pending_count',
    'pending_entity_ids',
    'failed_operations',
    'acknowledge_failure',
    'forget_purged',
    # Remote
    'RemoteStore',
    'get_remote_store',
    # Reconciliation
    'SyncReconciler',
    'SyncReport',
    'SweepReport',
    'build_reconciler',
    # Connectivity
    'ConnectivityMonitor',
    'build_monitor',
    'dns_link_check',
    'get_monitor',
    'reset_monitor',
]
