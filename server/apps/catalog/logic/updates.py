"""Whitelisted record updates.

Each update names exactly the record fields it may change, so callers
cannot slip unrelated field changes into a mutation.
"""

from dataclasses import dataclass
from typing import Any, final

from server.apps.catalog.exceptions import ValidationError


def clean_name(name: str) -> str:
    """Strip surrounding whitespace from a display name.

    Args:
        name: Name as typed by the user.

    Returns:
        The trimmed name.

    Raises:
        ValidationError: If nothing is left after trimming.
    """
    cleaned = name.strip()
    if not cleaned:
        raise ValidationError('Name cannot be empty')
    return cleaned


def clean_tags(tags: tuple[str, ...]) -> tuple[str, ...]:
    """Trim tags and drop blanks and duplicates, keeping first-seen order."""
    seen: dict[str, None] = {}
    for tag in tags:
        cleaned = tag.strip()
        if cleaned:
            seen.setdefault(cleaned, None)
    return tuple(seen)


@final
@dataclass(frozen=True, slots=True)
class RenameUpdate:
    """Give a record a new display name."""

    name: str

    touches_modified = True

    def changes(self) -> dict[str, Any]:
        return {'name': clean_name(self.name)}


@final
@dataclass(frozen=True, slots=True)
class TagUpdate:
    """Replace the tags of a record."""

    tags: tuple[str, ...]

    touches_modified = True

    def changes(self) -> dict[str, Any]:
        return {'tags': clean_tags(self.tags)}


@final
@dataclass(frozen=True, slots=True)
class StarUpdate:
    """Star or unstar a record."""

    starred: bool

    touches_modified = False

    def changes(self) -> dict[str, Any]:
        return {'is_starred': self.starred}


@final
@dataclass(frozen=True, slots=True)
class ShareUpdate:
    """Mark a record as shared or private."""

    shared: bool

    touches_modified = False

    def changes(self) -> dict[str, Any]:
        return {'is_shared': self.shared}


@final
@dataclass(frozen=True, slots=True)
class MoveUpdate:
    """Reparent a record; ``parent_id=None`` moves it to the root."""

    parent_id: str | None

    touches_modified = True

    def changes(self) -> dict[str, Any]:
        return {'parent_id': self.parent_id}


RecordUpdate = RenameUpdate | TagUpdate | StarUpdate | ShareUpdate | MoveUpdate
