"""Exceptions for catalog app.

Every catalog mutation either succeeds completely or raises one of these
errors with the catalog left untouched.
"""


class CatalogError(Exception):
    """Base class for all catalog errors."""


class ValidationError(CatalogError):
    """Raised when an argument violates a precondition (e.g. empty name)."""


class CycleError(CatalogError):
    """Raised when a move would place a folder inside itself."""

    def __init__(self, record_id: str, target_id: str) -> None:
        """Initialize CycleError.

        Args:
            record_id: Folder being moved.
            target_id: Requested new parent.
        """
        self.record_id = record_id
        self.target_id = target_id
        super().__init__(
            f'Cannot move {record_id} into {target_id}: '
            'target is the folder itself or one of its descendants',
        )


class NotFoundError(CatalogError):
    """Raised when an operation references an unknown record id."""

    def __init__(self, record_id: str, kind: str = 'record') -> None:
        """Initialize NotFoundError.

        Args:
            record_id: The id that could not be resolved.
            kind: What was looked up ('record' or 'folder').
        """
        self.record_id = record_id
        self.kind = kind
        super().__init__(f'No {kind} with id {record_id!r}')


class ConsistencyError(CatalogError):
    """Raised when an internal invariant is broken.

    Unlike the other errors this signals a programming bug (e.g. a parent
    chain longer than the catalog, meaning a cycle slipped through).
    """


class QuotaExceededError(CatalogError):
    """Raised when storing a file would exceed the user's storage quota."""

    def __init__(
        self,
        limit_bytes: int,
        used_bytes: int,
        required_bytes: int,
    ) -> None:
        """Initialize QuotaExceededError.

        Args:
            limit_bytes: Total quota limit in bytes.
            used_bytes: Currently used bytes.
            required_bytes: Bytes needed for the operation.
        """
        self.limit_bytes = limit_bytes
        self.used_bytes = used_bytes
        self.required_bytes = required_bytes

        available = max(0, limit_bytes - used_bytes)
        super().__init__(
            f'Quota exceeded: need {required_bytes} bytes, '
            f'only {available} bytes available '
            f'(limit: {limit_bytes}, used: {used_bytes})',
        )
