"""
Trash handling: permanent deletion of soft-deleted installments.

Purging marks the row as a tombstone and queues a ``hard_delete``; the row
itself disappears once the remote store confirms the delete.
"""

import logging
from uuid import UUID

from django.db import transaction

from apps.accounts.models import User
from apps.installments.models import Installment
from apps.sync.services import store as sync_store

from .installment_management import get_installment


logger = logging.getLogger(__name__)


def _purge(installment):
    installment.purge()
    sync_store.add_to_queue(
        user=installment.owner,
        kind='hard_delete',
        entity_type='installment',
        entity_id=installment.id,
        payload={'id': str(installment.id)},
    )


@transaction.atomic
def purge_installment(*, installment_id: UUID, user: User) -> Installment:
    """
    Permanently delete an installment from the trash.

    Raises:
        InstallmentNotFoundError: Unknown installment
        InvalidLifecycleTransitionError: The installment is not in the trash
    """
    installment = get_installment(installment_id=installment_id, user=user)
    _purge(installment)
    logger.info("Purged installment %s", installment.id)
    return installment


@transaction.atomic
def empty_trash(*, user: User) -> list:
    """Purge everything in the user's trash. Returns the purged ids."""
    purged = []
    for installment in Installment.objects.for_user(user).trashed():
        _purge(installment)
        purged.append(str(installment.id))
    if purged:
        logger.info("Emptied trash of %s: %d installments", user, len(purged))
    return purged


@transaction.atomic
def purge_expired(*, cutoff, user=None) -> list:
    """
    Purge installments soft-deleted before ``cutoff``.

    Args:
        cutoff: Aware datetime; anything deleted earlier is purged.
        user: Limit the sweep to one user (all users when None).

    Returns:
        Ids (as strings) of the purged installments.
    """
    queryset = Installment.objects.trashed().filter(deleted_at__lt=cutoff).select_related('owner')
    if user is not None:
        queryset = queryset.filter(owner=user)

    purged = []
    for installment in queryset:
        _purge(installment)
        purged.append(str(installment.id))
    return purged
