"""In-memory file/folder catalog.

The catalog is the single writer of the record collection shown by the
client. Every query is recomputed from the current state, and every
mutation is applied synchronously and optimistically: persistence happens
elsewhere (see ``server.apps.catalog.logic.session``) and never blocks or
rolls back the local change.

Mutations validate everything before touching state, so a failed call
leaves the catalog exactly as it was.
"""

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable, Iterator
from dataclasses import replace
from datetime import datetime
from typing import Any, Final, NoReturn, final

from server.apps.catalog.exceptions import (
    ConsistencyError,
    CycleError,
    NotFoundError,
    ValidationError,
)
from server.apps.catalog.logic.records import (
    FOLDER_TYPE,
    ROOT,
    BreadcrumbItem,
    FileRecord,
    FilterOption,
    SortOption,
    new_record_id,
    utc_now,
)
from server.apps.catalog.logic.updates import (
    MoveUpdate,
    RecordUpdate,
    RenameUpdate,
    ShareUpdate,
    StarUpdate,
    TagUpdate,
    clean_name,
    clean_tags,
)

logger = logging.getLogger(__name__)
consistency_logger = logging.getLogger('server.apps.catalog.consistency')

_DEFAULT_ROOT_LABEL: Final = 'Home'
_PATH_SEPARATOR: Final = '/'

_SORT_KEYS: Final[dict[str, Callable[[FileRecord], Any]]] = {
    'name': lambda record: record.name.casefold(),
    'size': lambda record: record.size,
    'last_modified': lambda record: record.last_modified,
    'type': lambda record: record.sort_type.casefold(),
}


def sort_records(
    records: Iterable[FileRecord],
    sort_option: SortOption,
) -> list[FileRecord]:
    """Order records folders-first, then by the chosen field.

    Both passes are stable, so records with equal keys keep the order
    they were given in.

    Args:
        records: Records in tie-break order.
        sort_option: Field and direction.

    Returns:
        New sorted list.
    """
    by_field = sorted(
        records,
        key=_SORT_KEYS[sort_option.field],
        reverse=sort_option.descending,
    )
    return sorted(by_field, key=lambda record: not record.is_folder)


@final
class Catalog:
    """Normalized collection of file and folder records plus view state.

    Records are keyed by id. Two orders are tracked:

    - insertion order, used as the sort tie-break;
    - display order of the raw collection, where newly added records are
      placed first (``records()`` returns this order).
    """

    def __init__(
        self,
        records: Iterable[FileRecord] = (),
        *,
        root_label: str = _DEFAULT_ROOT_LABEL,
        sort_option: SortOption | None = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = new_record_id,
    ) -> None:
        """Initialize the catalog.

        Args:
            records: Initial records, validated like ``add_files``.
            root_label: Name of the synthetic root breadcrumb.
            sort_option: Initial listing sort, name ascending by default.
            clock: Source of modification timestamps.
            id_factory: Source of ids for new folders.
        """
        # Dict order is insertion order and doubles as the sort tie-break
        self._records: dict[str, FileRecord] = {}
        self._display_order: list[str] = []
        self._paths: dict[str, str] = {}

        self._root_label = root_label
        self._clock = clock
        self._id_factory = id_factory

        self._current_folder_id: str | None = ROOT
        self._search_query = ''
        self._sort_option = sort_option or SortOption()
        self._filter_option = FilterOption()

        initial = list(records)
        if initial:
            self.add_files(initial)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    # View state

    @property
    def current_folder_id(self) -> str | None:
        """Id of the folder being browsed, ``None`` for the root."""
        return self._current_folder_id

    @property
    def search_query(self) -> str:
        return self._search_query

    @property
    def sort_option(self) -> SortOption:
        return self._sort_option

    @property
    def filter_option(self) -> FilterOption:
        return self._filter_option

    def navigate_to(self, folder_id: str | None) -> None:
        """Make ``folder_id`` the current folder.

        Raises:
            NotFoundError: If the folder does not exist.
            ValidationError: If the id belongs to a file.
        """
        self._require_folder(folder_id)
        self._current_folder_id = folder_id

    def set_search_query(self, query: str) -> None:
        self._search_query = query

    def set_sort_option(self, sort_option: SortOption) -> None:
        self._sort_option = sort_option

    def set_filter_option(self, filter_option: FilterOption) -> None:
        self._filter_option = filter_option

    def current_folder(self) -> FileRecord | None:
        """Record of the current folder, ``None`` at the root."""
        if self._current_folder_id is ROOT:
            return None
        return self.get(self._current_folder_id)

    def visible_children(self) -> list[FileRecord]:
        """Listing of the current folder under the active view state."""
        return self.list_children(self._current_folder_id)

    # Queries

    def get(self, record_id: str) -> FileRecord:
        """Get one record by id.

        Raises:
            NotFoundError: If the id is unknown.
        """
        return self._materialize(self._require(record_id))

    def ensure_folder(self, folder_id: str | None) -> None:
        """Check that ``folder_id`` can hold children.

        Raises:
            NotFoundError: If the folder does not exist.
            ValidationError: If the id belongs to a file.
        """
        self._require_folder(folder_id)

    def records(self) -> list[FileRecord]:
        """Snapshot of every record, most recently added first."""
        return [
            self._materialize(self._records[record_id])
            for record_id in self._display_order
        ]

    def list_children(self, folder_id: str | None = ROOT) -> list[FileRecord]:
        """List the visible children of a folder.

        Applies, in order: the search query (case-insensitive substring of
        the name), then the filter option (type, date range, size range,
        tags, flags). The result lists folders before files and is sorted
        by the current sort option, ties broken by insertion order.

        Args:
            folder_id: Folder to list, ``None`` for the root.

        Returns:
            Fresh list of records; never cached.

        Raises:
            NotFoundError: If the folder does not exist.
            ValidationError: If the id belongs to a file.
        """
        self._require_folder(folder_id)
        query = self._search_query.casefold()
        children = [
            record
            for record in self._records.values()
            if record.parent_id == folder_id
            and query in record.name.casefold()
            and self._filter_option.matches(record)
        ]
        return [
            self._materialize(record)
            for record in sort_records(children, self._sort_option)
        ]

    def breadcrumbs(self, folder_id: str | None = ROOT) -> list[BreadcrumbItem]:
        """Path from the root to ``folder_id``.

        The first item is the synthetic root (``id=None``), the last one is
        the folder itself unless it is the root.

        Raises:
            NotFoundError: If the folder does not exist.
            ValidationError: If the id belongs to a file.
            ConsistencyError: If the parent chain is broken or cyclic.
        """
        self._require_folder(folder_id)
        crumbs = [
            BreadcrumbItem(id=record.id, name=record.name)
            for record in self._walk_up(folder_id, kind='folder')
        ]
        crumbs.append(BreadcrumbItem(id=ROOT, name=self._root_label))
        crumbs.reverse()
        return crumbs

    def path_of(self, record_id: str) -> str:
        """Materialized path of the folders containing ``record_id``.

        Example: a file inside ``Design Assets`` -> ``'/Design Assets/'``.

        Raises:
            NotFoundError: If the id is unknown.
        """
        cached = self._paths.get(record_id)
        if cached is not None:
            return cached
        record = self._require(record_id)
        names = [
            ancestor.name
            for ancestor in self._walk_up(record.parent_id, kind='folder')
        ]
        names.reverse()
        path = _PATH_SEPARATOR.join(['', *names, ''])
        self._paths[record_id] = path
        return path

    def descendants(self, folder_id: str) -> list[FileRecord]:
        """Every record below ``folder_id``, breadth first.

        Raises:
            NotFoundError: If the id is unknown.
        """
        subtree = self._subtree_ids(folder_id)
        return [
            self._materialize(self._records[record_id])
            for record_id in subtree[1:]
        ]

    def folder_size(self, record_id: str) -> int:
        """Total size of the files below a folder (a file's own size).

        Folder sizes are never stored; this is always derived.
        """
        return sum(
            self._records[descendant_id].size
            for descendant_id in self._subtree_ids(record_id)
        )

    # Mutations

    def create_folder(
        self,
        name: str,
        parent_id: str | None = ROOT,
    ) -> FileRecord:
        """Create an empty folder.

        Args:
            name: Display name; trimmed before storing.
            parent_id: Containing folder, ``None`` for the root.

        Returns:
            The new folder record.

        Raises:
            ValidationError: If the name is blank or the parent is a file.
            NotFoundError: If the parent does not exist.
        """
        cleaned = clean_name(name)
        self._require_folder(parent_id)
        folder = FileRecord(
            id=self._id_factory(),
            name=cleaned,
            is_folder=True,
            parent_id=parent_id,
            size=0,
            last_modified=self._clock(),
            mime_type=FOLDER_TYPE,
        )
        self._insert([folder])
        logger.debug('Folder created: %s (ID: %s)', cleaned, folder.id)
        return self._materialize(folder)

    def add_files(self, records: Iterable[FileRecord]) -> list[FileRecord]:
        """Add records, typically completed uploads, in front of the rest.

        The batch is validated as a whole: a parent may be an existing
        folder or a folder from the same batch.

        Args:
            records: Records to add.

        Returns:
            The added records as stored.

        Raises:
            ValidationError: On blank names, negative sizes, non-empty
                folder sizes, duplicate ids or a file used as a parent.
            NotFoundError: If a parent does not exist.
            CycleError: If the batch references itself in a loop.
        """
        batch = [_normalize(record) for record in records]
        if not batch:
            return []

        batch_by_id: dict[str, FileRecord] = {}
        for record in batch:
            if record.id in self._records or record.id in batch_by_id:
                raise ValidationError(f'Duplicate record id: {record.id!r}')
            batch_by_id[record.id] = record

        for record in batch:
            self._check_batch_parent(record, batch_by_id)
        self._check_batch_acyclic(batch_by_id)

        self._insert(batch)
        logger.debug('Added %d records to catalog', len(batch))
        return [self._materialize(record) for record in batch]

    def update_file(self, record_id: str, update: RecordUpdate) -> FileRecord:
        """Apply one whitelisted update to a record.

        Renames, moves and tag edits bump ``last_modified``; star and share
        toggles do not.

        Returns:
            The updated record.

        Raises:
            NotFoundError: If the record (or a move target) does not exist.
            ValidationError: On a blank name or a file as move target.
            CycleError: If a move targets the record or its descendant.
        """
        current = self._require(record_id)
        if isinstance(update, MoveUpdate):
            self._check_move(current, update.parent_id)
        changes = update.changes()
        if update.touches_modified:
            changes['last_modified'] = self._clock()
        updated = replace(current, **changes)
        self._records[record_id] = updated
        self._paths.clear()
        logger.debug(
            'Record updated: %s (%s)',
            record_id,
            type(update).__name__,
        )
        return self._materialize(updated)

    def rename_file(self, record_id: str, name: str) -> FileRecord:
        return self.update_file(record_id, RenameUpdate(name=name))

    def set_tags(self, record_id: str, tags: Iterable[str]) -> FileRecord:
        return self.update_file(record_id, TagUpdate(tags=tuple(tags)))

    def set_starred(self, record_id: str, starred: bool) -> FileRecord:
        return self.update_file(record_id, StarUpdate(starred=starred))

    def set_shared(self, record_id: str, shared: bool) -> FileRecord:
        return self.update_file(record_id, ShareUpdate(shared=shared))

    def move_file(
        self,
        record_id: str,
        new_parent_id: str | None,
    ) -> FileRecord:
        """Move a record under another folder (or the root).

        Raises:
            CycleError: If the target is the record or one of its
                descendants.
            NotFoundError: If the record or target does not exist.
            ValidationError: If the target is a file.
        """
        return self.update_file(record_id, MoveUpdate(parent_id=new_parent_id))

    def delete_file(self, record_id: str) -> list[FileRecord]:
        """Remove a record and, for folders, everything below it.

        If the current folder disappears with the subtree, browsing moves
        to the deleted record's parent.

        Returns:
            Removed records, the deleted record first.

        Raises:
            NotFoundError: If the id is unknown.
        """
        subtree = self._subtree_ids(record_id)
        removed = [
            self._materialize(self._records[removed_id])
            for removed_id in subtree
        ]
        self._remove(subtree)

        if self._current_folder_id in set(subtree):
            self._current_folder_id = removed[0].parent_id

        logger.info(
            'Deleted %s from catalog with %d descendants',
            record_id,
            len(subtree) - 1,
        )
        return removed

    def apply_listing(
        self,
        folder_id: str | None,
        records: Iterable[FileRecord],
    ) -> list[FileRecord]:
        """Replace the direct children of a folder with a fetched listing.

        Children missing from the listing are removed with their subtrees,
        known records are replaced in place, and new ones are added.

        Args:
            folder_id: Listed folder, ``None`` for the root.
            records: Children as returned by the storage backend.

        Returns:
            The children of the folder after the update.

        Raises:
            NotFoundError: If the folder does not exist.
            ValidationError: If a record belongs to another folder, ids
                repeat, or a record changes between file and folder.
            CycleError: If a listed folder is an ancestor of ``folder_id``.
        """
        self._require_folder(folder_id)
        listing: dict[str, FileRecord] = {}
        for record in records:
            normalized = _normalize(record)
            if normalized.parent_id != folder_id:
                raise ValidationError(
                    f'Record {normalized.id!r} is not a child of {folder_id!r}',
                )
            if normalized.id in listing:
                raise ValidationError(f'Duplicate record id: {normalized.id!r}')
            listing[normalized.id] = normalized

        for record in listing.values():
            known = self._records.get(record.id)
            if known is None:
                continue
            if known.is_folder != record.is_folder:
                raise ValidationError(
                    f'Record {record.id!r} cannot change between file and folder',
                )
            if known.parent_id != folder_id:
                self._check_move(known, folder_id)

        stale = [
            record.id
            for record in self._records.values()
            if record.parent_id == folder_id and record.id not in listing
        ]
        doomed: list[str] = []
        for stale_id in stale:
            doomed.extend(
                doomed_id
                for doomed_id in self._subtree_ids(stale_id)
                if doomed_id not in listing
            )

        self._remove(doomed)
        if self._current_folder_id in set(doomed):
            self._current_folder_id = folder_id
        fresh = [record for record in listing.values() if record.id not in self]
        for record in listing.values():
            if record.id in self._records:
                self._records[record.id] = record
        self._insert(fresh)
        self._paths.clear()

        logger.debug(
            'Applied listing of %s: %d children, %d removed',
            folder_id,
            len(listing),
            len(doomed),
        )
        return [self._materialize(record) for record in listing.values()]

    # Internals

    def _require(self, record_id: str) -> FileRecord:
        record = self._records.get(record_id)
        if record is None:
            raise NotFoundError(record_id)
        return record

    def _require_folder(self, folder_id: str | None) -> None:
        if folder_id is ROOT:
            return
        record = self._records.get(folder_id)
        if record is None:
            raise NotFoundError(folder_id, 'folder')
        if not record.is_folder:
            raise ValidationError(f'{folder_id!r} is a file, not a folder')

    def _walk_up(
        self,
        start_id: str | None,
        kind: str = 'record',
    ) -> Iterator[FileRecord]:
        """Yield ``start_id`` and its ancestors up to the root.

        Stops with ``ConsistencyError`` after more hops than there are
        records, or when an ancestor is missing.
        """
        current = start_id
        hops = 0
        while current is not ROOT:
            record = self._records.get(current)
            if record is None:
                if hops == 0:
                    raise NotFoundError(current, kind)
                self._fail_consistency(
                    f'Ancestor {current!r} of {start_id!r} is missing',
                )
            if hops >= len(self._records):
                self._fail_consistency(
                    f'Parent chain of {start_id!r} exceeds catalog size '
                    f'({len(self._records)} records): cycle detected',
                )
            yield record
            current = record.parent_id
            hops += 1

    def _subtree_ids(self, record_id: str) -> list[str]:
        """Ids of a record and everything below it, breadth first."""
        self._require(record_id)
        children: defaultdict[str | None, list[str]] = defaultdict(list)
        for record in self._records.values():
            children[record.parent_id].append(record.id)

        subtree = [record_id]
        seen = {record_id}
        index = 0
        while index < len(subtree):
            for child_id in children[subtree[index]]:
                if child_id in seen:
                    self._fail_consistency(
                        f'Record {child_id!r} reached twice below {record_id!r}',
                    )
                seen.add(child_id)
                subtree.append(child_id)
            index += 1
        return subtree

    def _check_move(self, record: FileRecord, target_id: str | None) -> None:
        if target_id is ROOT:
            return
        if target_id == record.id:
            raise CycleError(record.id, target_id)
        self._require_folder(target_id)
        if not record.is_folder:
            return
        for ancestor in self._walk_up(target_id, kind='folder'):
            if ancestor.id == record.id:
                raise CycleError(record.id, target_id)

    def _check_batch_parent(
        self,
        record: FileRecord,
        batch_by_id: dict[str, FileRecord],
    ) -> None:
        parent_id = record.parent_id
        if parent_id is ROOT:
            return
        if parent_id == record.id:
            raise CycleError(record.id, parent_id)
        parent = batch_by_id.get(parent_id) or self._records.get(parent_id)
        if parent is None:
            raise NotFoundError(parent_id, 'folder')
        if not parent.is_folder:
            raise ValidationError(f'{parent_id!r} is a file, not a folder')

    def _check_batch_acyclic(self, batch_by_id: dict[str, FileRecord]) -> None:
        # Existing records are already acyclic; only chains through the
        # batch itself can loop.
        for record in batch_by_id.values():
            current = record.parent_id
            hops = 0
            while current in batch_by_id:
                hops += 1
                if hops > len(batch_by_id):
                    raise CycleError(record.id, record.parent_id)
                current = batch_by_id[current].parent_id

    def _insert(self, batch: list[FileRecord]) -> None:
        for record in batch:
            self._records[record.id] = record
        self._display_order[:0] = [record.id for record in batch]

    def _remove(self, record_ids: list[str]) -> None:
        if not record_ids:
            return
        doomed = set(record_ids)
        for record_id in record_ids:
            del self._records[record_id]
        self._display_order = [
            record_id
            for record_id in self._display_order
            if record_id not in doomed
        ]
        self._paths.clear()

    def _materialize(self, record: FileRecord) -> FileRecord:
        return replace(record, path=self.path_of(record.id))

    def _fail_consistency(self, message: str) -> NoReturn:
        consistency_logger.error(message)
        raise ConsistencyError(message)


def _normalize(record: FileRecord) -> FileRecord:
    """Validate an incoming record and bring it into stored form."""
    if record.size < 0:
        raise ValidationError(f'Negative size for record {record.id!r}')
    if record.is_folder and record.size != 0:
        raise ValidationError(f'Folder {record.id!r} must have size 0')
    return replace(
        record,
        name=clean_name(record.name),
        tags=clean_tags(record.tags),
        mime_type=FOLDER_TYPE if record.is_folder else record.mime_type,
        path='',
    )
