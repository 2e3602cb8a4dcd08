"""Value types held and returned by the catalog.

Records are immutable: the catalog replaces a record wholesale when it
changes, so a snapshot handed to a consumer can never be altered behind
its back.
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Final, Literal, final, get_args

from server.apps.catalog.exceptions import ValidationError

# Parent id of top-level records
ROOT: Final = None

# MIME type reported for folders
FOLDER_TYPE: Final = 'folder'

SortField = Literal['name', 'size', 'last_modified', 'type']
SortDirection = Literal['asc', 'desc']

_SORT_FIELDS: Final = frozenset(get_args(SortField))
_SORT_DIRECTIONS: Final = frozenset(get_args(SortDirection))


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(tz=UTC)


def new_record_id() -> str:
    """Generate an opaque unique record id."""
    return uuid.uuid4().hex


@final
@dataclass(frozen=True, slots=True)
class FileRecord:
    """One file or folder in the catalog.

    ``path`` is the materialized path of the containing folder chain
    (``'/'`` for top-level records, ``'/Design Assets/'`` for its children).
    It is filled in by the catalog on every read and is never authoritative.
    """

    id: str
    name: str
    is_folder: bool
    parent_id: str | None = ROOT
    size: int = 0
    last_modified: datetime = field(default_factory=utc_now)
    mime_type: str = ''
    tags: tuple[str, ...] = ()
    is_starred: bool = False
    is_shared: bool = False
    locator: str = ''
    checksum: str = ''
    path: str = ''

    @property
    def sort_type(self) -> str:
        """Type used when sorting by type (folders report ``'folder'``)."""
        return FOLDER_TYPE if self.is_folder else self.mime_type

    def has_tags(self, tags: frozenset[str]) -> bool:
        """Check the record carries every tag in ``tags``."""
        return tags.issubset(self.tags)


@final
@dataclass(frozen=True, slots=True)
class BreadcrumbItem:
    """One step of the path from the root to a folder."""

    id: str | None
    name: str


@final
@dataclass(frozen=True, slots=True)
class SortOption:
    """Sort field and direction of folder listings."""

    field: SortField = 'name'
    direction: SortDirection = 'asc'

    def __post_init__(self) -> None:
        """Reject unknown fields and directions."""
        if self.field not in _SORT_FIELDS:
            raise ValidationError(f'Unknown sort field: {self.field!r}')
        if self.direction not in _SORT_DIRECTIONS:
            raise ValidationError(
                f'Unknown sort direction: {self.direction!r}',
            )

    @property
    def descending(self) -> bool:
        """Whether larger values come first."""
        return self.direction == 'desc'


@final
@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive ``[start, end]`` range of modification times."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        """Reject inverted ranges."""
        if self.start > self.end:
            raise ValidationError('Date range start is after its end')

    def __contains__(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@final
@dataclass(frozen=True, slots=True)
class SizeRange:
    """Inclusive ``[min, max]`` range of sizes in bytes."""

    min: int
    max: int

    def __post_init__(self) -> None:
        """Reject negative bounds and inverted ranges."""
        if self.min < 0 or self.max < 0:
            raise ValidationError('Size range bounds must be non-negative')
        if self.min > self.max:
            raise ValidationError('Size range min is greater than max')

    def __contains__(self, size: int) -> bool:
        return self.min <= size <= self.max


@final
@dataclass(frozen=True, slots=True)
class FilterOption:
    """Filters applied to folder listings; ``None`` disables a filter."""

    mime_type: str | None = None
    date_range: DateRange | None = None
    size_range: SizeRange | None = None
    tags: frozenset[str] = frozenset()
    starred: bool | None = None
    shared: bool | None = None

    def matches(self, record: FileRecord) -> bool:
        """Check whether ``record`` passes every enabled filter.

        Args:
            record: Record to test.

        Returns:
            True if the record is kept.
        """
        if self.mime_type is not None and record.mime_type != self.mime_type:
            return False
        if (
            self.date_range is not None
            and record.last_modified not in self.date_range
        ):
            return False
        if self.size_range is not None and record.size not in self.size_range:
            return False
        if self.tags and not record.has_tags(self.tags):
            return False
        if self.starred is not None and record.is_starred != self.starred:
            return False
        return self.shared is None or record.is_shared == self.shared
