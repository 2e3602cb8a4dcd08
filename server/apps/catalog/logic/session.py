"""Catalog session: a catalog wired to persistence and notifications.

All methods run on one asyncio event loop. Local changes are applied to
the catalog immediately; the matching backend call is queued as a task
whose outcome goes to the notifier. Queued calls run one at a time in
the order they were issued, so a folder is always persisted before files
added into it.

Folder listings are fetched asynchronously. A listing is only applied if
it answers the latest ``open_folder`` call and its folder is still the
current one; anything else is discarded on arrival.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, BinaryIO, final

from asgiref.sync import sync_to_async
from django.conf import settings

from server.apps.catalog.infrastructure.backend import (
    DatabaseBackend,
    StorageBackend,
)
from server.apps.catalog.logic.catalog import Catalog
from server.apps.catalog.logic.notifications import Notifier, SessionContext
from server.apps.catalog.logic.records import ROOT, FileRecord, SortOption
from server.apps.catalog.logic.updates import (
    MoveUpdate,
    RecordUpdate,
    RenameUpdate,
    ShareUpdate,
    StarUpdate,
    TagUpdate,
)
from server.apps.catalog.logic.upload_operations import (
    discard_upload,
    upload_file,
)

logger = logging.getLogger(__name__)

Uploader = Callable[[Any, BinaryIO, str, str | None], FileRecord]

_UPDATE_LABELS = {
    RenameUpdate: 'rename',
    TagUpdate: 'tag update',
    StarUpdate: 'star change',
    ShareUpdate: 'sharing change',
    MoveUpdate: 'move',
}


@final
class CatalogSession:
    """One user's catalog plus the calls that keep the backend in sync."""

    def __init__(
        self,
        context: SessionContext,
        backend: StorageBackend,
        catalog: Catalog | None = None,
        uploader: Uploader = upload_file,
    ) -> None:
        """Initialize the session.

        Args:
            context: Signed-in user and notifier.
            backend: Persistence for records.
            catalog: Catalog to drive, a fresh empty one by default.
            uploader: Stores file bytes and returns the new record.
        """
        self._context = context
        self._backend = backend
        self._catalog = catalog if catalog is not None else Catalog()
        self._uploader = uploader

        self._latest_request = 0
        self._loading_request: int | None = None
        self._write_lock = asyncio.Lock()
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    @property
    def notifier(self) -> Notifier:
        return self._context.notifier

    @property
    def is_loading(self) -> bool:
        """Whether the listing of the current folder is still on its way."""
        return self._loading_request is not None

    @property
    def pending_writes(self) -> int:
        """Number of persistence calls not finished yet."""
        return len(self._pending)

    async def open_folder(self, folder_id: str | None) -> bool:
        """Switch to a folder and load its children.

        The switch happens immediately; the listing is applied only if no
        other folder was opened while it was loading.

        Args:
            folder_id: Folder to open, ``None`` for the root.

        Returns:
            True if the fetched listing was applied, False if discarded.

        Raises:
            NotFoundError: If the folder is unknown to the catalog.
            Exception: If fetching the current folder's listing fails.
        """
        self._catalog.navigate_to(folder_id)
        self._latest_request += 1
        request = self._latest_request
        self._loading_request = request

        try:
            records = await self._backend.fetch_children(folder_id)
        except Exception as error:
            if not self._is_current(request, folder_id):
                logger.debug('Ignoring failed stale listing of %s', folder_id)
                return False
            logger.exception('Failed to load folder %s', folder_id)
            self.notifier.failure('Could not load folder', error)
            raise
        finally:
            if self._loading_request == request:
                self._loading_request = None

        if not self._is_current(request, folder_id):
            logger.debug(
                'Discarding stale listing of %s (%d records)',
                folder_id,
                len(records),
            )
            return False

        self._catalog.apply_listing(folder_id, records)
        return True

    def create_folder(
        self,
        name: str,
        parent_id: str | None = ROOT,
    ) -> FileRecord:
        """Create a folder locally and queue its persistence."""
        folder = self._catalog.create_folder(name, parent_id)
        self._dispatch(
            lambda: self._backend.persist_create(folder),
            f'Folder "{folder.name}" created',
            f'Could not create folder "{folder.name}"',
        )
        return folder

    def add_files(self, records: Iterable[FileRecord]) -> list[FileRecord]:
        """Add finished uploads locally and queue their persistence."""
        added = self._catalog.add_files(records)
        for record in _parents_first(added):
            self._dispatch(
                _bind(self._backend.persist_create, record),
                f'"{record.name}" saved',
                f'Could not save "{record.name}"',
            )
        return added

    async def upload(
        self,
        file_obj: BinaryIO,
        filename: str,
        parent_id: str | None = ROOT,
    ) -> FileRecord:
        """Store a file's bytes, then add the resulting record.

        The catalog is updated only once the bytes are stored. If the
        record cannot be added (e.g. its folder was deleted meanwhile),
        the stored bytes are removed again.

        Returns:
            The added record.

        Raises:
            QuotaExceededError: If the file does not fit.
            CatalogError: If the record cannot be added.
        """
        self._catalog.ensure_folder(parent_id)
        record = await sync_to_async(self._uploader)(
            self._context.user,
            file_obj,
            filename,
            parent_id,
        )
        try:
            (added,) = self.add_files([record])
        except Exception:
            logger.exception('Uploaded %s could not be added', record.name)
            await sync_to_async(discard_upload)(record)
            raise
        return added

    def update_file(self, record_id: str, update: RecordUpdate) -> FileRecord:
        """Apply an update locally and queue its persistence."""
        updated = self._catalog.update_file(record_id, update)
        label = _UPDATE_LABELS[type(update)]
        self._dispatch(
            lambda: self._backend.persist_mutate(
                record_id,
                update,
                last_modified=updated.last_modified,
            ),
            f'Saved {label} of "{updated.name}"',
            f'Could not save {label} of "{updated.name}"',
        )
        return updated

    def rename_file(self, record_id: str, name: str) -> FileRecord:
        return self.update_file(record_id, RenameUpdate(name=name))

    def move_file(
        self,
        record_id: str,
        new_parent_id: str | None,
    ) -> FileRecord:
        return self.update_file(record_id, MoveUpdate(parent_id=new_parent_id))

    def set_tags(self, record_id: str, tags: Iterable[str]) -> FileRecord:
        return self.update_file(record_id, TagUpdate(tags=tuple(tags)))

    def set_starred(self, record_id: str, starred: bool) -> FileRecord:
        return self.update_file(record_id, StarUpdate(starred=starred))

    def toggle_star(self, record_id: str) -> FileRecord:
        current = self._catalog.get(record_id)
        return self.update_file(
            record_id,
            StarUpdate(starred=not current.is_starred),
        )

    def set_shared(self, record_id: str, shared: bool) -> FileRecord:
        return self.update_file(record_id, ShareUpdate(shared=shared))

    def delete_file(self, record_id: str) -> list[FileRecord]:
        """Delete a record (and its subtree) locally and queue persistence."""
        removed = self._catalog.delete_file(record_id)
        self._dispatch(
            lambda: self._backend.persist_delete(record_id),
            f'"{removed[0].name}" deleted',
            f'Could not delete "{removed[0].name}"',
        )
        return removed

    async def drain(self) -> None:
        """Wait until every queued persistence call has finished."""
        while self._pending:
            await asyncio.gather(*self._pending)

    def _is_current(self, request: int, folder_id: str | None) -> bool:
        return (
            request == self._latest_request
            and self._catalog.current_folder_id == folder_id
        )

    def _dispatch(
        self,
        operation: Callable[[], Awaitable[object]],
        success_message: str,
        failure_message: str,
    ) -> None:
        task = asyncio.get_running_loop().create_task(
            self._persist(operation, success_message, failure_message),
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist(
        self,
        operation: Callable[[], Awaitable[object]],
        success_message: str,
        failure_message: str,
    ) -> None:
        async with self._write_lock:
            try:
                await operation()
            except Exception as error:
                # The local change stays; undoing it is up to the caller
                logger.exception(failure_message)
                self.notifier.failure(failure_message, error)
            else:
                self.notifier.success(success_message)


def build_session(
    user: Any,
    notifier: Notifier | None = None,
    backend: StorageBackend | None = None,
) -> CatalogSession:
    """Create a session for a user with settings-driven defaults.

    Args:
        user: Signed-in user.
        notifier: Outcome sink, logging only by default.
        backend: Persistence, the user's database entries by default.

    Returns:
        New CatalogSession with an empty catalog.
    """
    catalog = Catalog(
        root_label=getattr(settings, 'CATALOG_ROOT_LABEL', 'Home'),
        sort_option=SortOption(
            field=getattr(settings, 'CATALOG_DEFAULT_SORT_FIELD', 'name'),
            direction=getattr(settings, 'CATALOG_DEFAULT_SORT_DIRECTION', 'asc'),
        ),
    )
    context = (
        SessionContext(user=user)
        if notifier is None
        else SessionContext(user=user, notifier=notifier)
    )
    return CatalogSession(
        context,
        backend if backend is not None else DatabaseBackend(user),
        catalog,
    )


def _bind(
    persist: Callable[[FileRecord], Awaitable[object]],
    record: FileRecord,
) -> Callable[[], Awaitable[object]]:
    return lambda: persist(record)


def _parents_first(records: list[FileRecord]) -> list[FileRecord]:
    """Order a batch so every folder comes before its batch children."""
    by_id = {record.id: record for record in records}

    def depth(record: FileRecord) -> int:
        hops = 0
        parent_id = record.parent_id
        while parent_id in by_id:
            hops += 1
            parent_id = by_id[parent_id].parent_id
        return hops

    return sorted(records, key=depth)
