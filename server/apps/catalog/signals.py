"""Signal handlers for catalog app."""

import logging

from django.core.files.storage import default_storage
from django.db.models.signals import post_delete
from django.dispatch import receiver

from server.apps.catalog.models import CatalogEntry

logger = logging.getLogger(__name__)


@receiver(post_delete, sender=CatalogEntry)
def delete_entry_content(
    sender: type[CatalogEntry],
    instance: CatalogEntry,
    **kwargs: object,
) -> None:
    """Remove stored bytes once their catalog entry is gone.

    Also fires for every entry removed by a cascading folder delete.
    Storage failures are logged only: the entry is already deleted and
    leftover objects can be swept later.

    Args:
        sender: The CatalogEntry model class.
        instance: The entry being deleted.
        **kwargs: Additional signal arguments.
    """
    if instance.is_folder or not instance.content:
        return

    storage_key = instance.content.name
    try:
        if default_storage.exists(storage_key):
            default_storage.delete(storage_key)
        else:
            logger.warning(
                'Content already missing from storage: %s',
                storage_key,
            )
    except Exception:
        logger.exception(
            'Failed to delete content from storage (orphaned): %s',
            storage_key,
        )
