"""Asynchronous persistence of catalog records.

The catalog applies changes locally first and then asks a storage backend
to persist them. Any object with the four coroutine methods of
``StorageBackend`` can play that role; ``DatabaseBackend`` is the one used
by the server, storing records as ``CatalogEntry`` rows.
"""

import logging
from datetime import datetime
from typing import Any, Final, Protocol, final

from asgiref.sync import sync_to_async
from django.db import transaction
from django.db.models import QuerySet, Sum

from server.apps.catalog.exceptions import CycleError, NotFoundError
from server.apps.catalog.logic.quota_operations import (
    decrement_usage,
    increment_usage,
)
from server.apps.catalog.logic.records import ROOT, FileRecord, utc_now
from server.apps.catalog.logic.updates import RecordUpdate
from server.apps.catalog.models import CatalogEntry

# User type for Django's dynamic user model
_User = Any

# Record field -> CatalogEntry field, for fields updates may change
_ENTRY_FIELDS: Final = {
    'name': 'name',
    'tags': 'tags',
    'is_starred': 'is_starred',
    'is_shared': 'is_shared',
    'parent_id': 'parent_id',
    'last_modified': 'modified_at',
}

logger = logging.getLogger(__name__)


class StorageBackend(Protocol):
    """Persistence contract the catalog session relies on.

    All methods may fail with any exception; the session reports such
    failures and never rolls back the local catalog.
    """

    async def fetch_children(self, folder_id: str | None) -> list[FileRecord]:
        """Load the direct children of a folder."""

    async def persist_create(self, record: FileRecord) -> FileRecord:
        """Store a new record."""

    async def persist_mutate(
        self,
        record_id: str,
        update: RecordUpdate,
        last_modified: datetime | None = None,
    ) -> None:
        """Store one whitelisted update of a record.

        ``last_modified`` is the time the catalog stamped on the record;
        it is stored for updates that touch the modification time.
        """

    async def persist_delete(self, record_id: str) -> None:
        """Delete a record and everything below it."""


@final
class DatabaseBackend:
    """Storage backend over the Django ORM, scoped to one user.

    ORM calls run through ``sync_to_async`` so they never block the event
    loop driving the session.
    """

    def __init__(self, user: _User) -> None:
        """Initialize backend for a user.

        Args:
            user: Owner of every entry read or written.
        """
        self._user = user

    async def fetch_children(self, folder_id: str | None) -> list[FileRecord]:
        """Load the direct children of a folder.

        Args:
            folder_id: Folder to list, ``None`` for the root.

        Returns:
            Records of the children.
        """
        return await sync_to_async(self._fetch_children)(folder_id)

    async def persist_create(self, record: FileRecord) -> FileRecord:
        """Store a new record and count files against the quota.

        Args:
            record: Record created in the catalog.

        Returns:
            The record as stored.

        Raises:
            NotFoundError: If the parent folder is not one of the user's.
            QuotaExceededError: If the file does not fit into the quota.
        """
        return await sync_to_async(self._create)(record)

    async def persist_mutate(
        self,
        record_id: str,
        update: RecordUpdate,
        last_modified: datetime | None = None,
    ) -> None:
        """Store one update of a record.

        Args:
            record_id: Entry to update.
            update: Whitelisted change.
            last_modified: Modification time to store, now by default.

        Raises:
            NotFoundError: If the entry (or a move target) does not exist.
        """
        await sync_to_async(self._mutate)(record_id, update, last_modified)

    async def persist_delete(self, record_id: str) -> None:
        """Delete an entry with its subtree and release its bytes.

        Raises:
            NotFoundError: If the entry does not exist.
        """
        await sync_to_async(self._delete)(record_id)

    def _entries(self) -> QuerySet[CatalogEntry]:
        return CatalogEntry.objects.filter(user=self._user)

    def _fetch_children(self, folder_id: str | None) -> list[FileRecord]:
        logger.debug('Fetching children of %s', folder_id)
        entries = self._entries().filter(parent_id=folder_id)
        return [entry.to_record() for entry in entries]

    def _require_folder(self, folder_id: str | None) -> None:
        if folder_id is ROOT:
            return
        if not self._entries().filter(id=folder_id, is_folder=True).exists():
            raise NotFoundError(folder_id, 'folder')

    def _check_move(self, record_id: str, target_id: str | None) -> None:
        self._require_folder(target_id)
        current = target_id
        while current is not ROOT:
            if current == record_id:
                raise CycleError(record_id, target_id)
            current = self._entries().values_list(
                'parent_id',
                flat=True,
            ).get(id=current)

    def _create(self, record: FileRecord) -> FileRecord:
        self._require_folder(record.parent_id)
        with transaction.atomic():
            if not record.is_folder:
                increment_usage(self._user, record.size)
            entry = CatalogEntry.from_record(record, self._user)
            entry.save(force_insert=True)
        logger.info(
            'Catalog entry created: %s (ID: %s)',
            record.name,
            record.id,
        )
        return entry.to_record()

    def _mutate(
        self,
        record_id: str,
        update: RecordUpdate,
        last_modified: datetime | None,
    ) -> None:
        changes = update.changes()
        if 'parent_id' in changes:
            self._check_move(record_id, changes['parent_id'])

        with transaction.atomic():
            try:
                entry = self._entries().select_for_update().get(id=record_id)
            except CatalogEntry.DoesNotExist as error:
                raise NotFoundError(record_id) from error
            if update.touches_modified:
                changes['last_modified'] = last_modified or utc_now()
            for record_field, value in changes.items():
                stored = list(value) if record_field == 'tags' else value
                setattr(entry, _ENTRY_FIELDS[record_field], stored)
            entry.save(
                update_fields=[
                    _ENTRY_FIELDS[record_field] for record_field in changes
                ],
            )
        logger.info(
            'Catalog entry updated: %s (%s)',
            record_id,
            type(update).__name__,
        )

    def _delete(self, record_id: str) -> None:
        with transaction.atomic():
            try:
                entry = self._entries().get(id=record_id)
            except CatalogEntry.DoesNotExist as error:
                raise NotFoundError(record_id) from error
            released = self._subtree_file_bytes(entry)
            # Children go with it through the cascading foreign key
            entry.delete()
            decrement_usage(self._user, released)
        logger.info(
            'Catalog entry deleted: %s (%d bytes released)',
            record_id,
            released,
        )

    def _subtree_file_bytes(self, entry: CatalogEntry) -> int:
        if not entry.is_folder:
            return entry.size_bytes
        total = 0
        level = [entry.id]
        while level:
            children = self._entries().filter(parent_id__in=level)
            total += children.filter(is_folder=False).aggregate(
                total=Sum('size_bytes'),
            )['total'] or 0
            level = list(
                children.filter(is_folder=True).values_list('id', flat=True),
            )
        return total
