"""Object storage backend for catalog file contents."""

import logging
from typing import Any, final, override

from storages.backends.s3 import S3Storage

logger = logging.getLogger(__name__)


@final
class FileStorage(S3Storage):
    """S3-compatible storage for uploaded file contents.

    Storage keys never encode the folder hierarchy, so renaming or moving
    a record in the catalog never touches stored objects. This subclass
    adds logging and a best-effort rollback used when a stored object
    could not be registered in the catalog.
    """

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Store content under ``name``.

        Args:
            name: Requested storage key.
            content: File content (file-like object).
            max_length: Optional maximum length for the key.

        Returns:
            Key actually used (may differ from ``name`` on conflicts).

        Raises:
            Exception: If the upload fails.
        """
        try:
            saved_name = super().save(name, content, max_length)
        except Exception:
            logger.exception('Failed to store content: %s', name)
            raise
        logger.info('Stored content: %s', saved_name)
        return saved_name

    @override
    def delete(self, name: str) -> None:
        """Delete stored content.

        Args:
            name: Storage key to delete.

        Raises:
            Exception: If the delete fails.
        """
        try:
            super().delete(name)
        except Exception:
            logger.exception('Failed to delete content: %s', name)
            raise
        logger.info('Deleted content: %s', name)

    def rollback_upload(self, name: str) -> None:
        """Delete content whose catalog entry could not be created.

        Best effort: failures are logged, never raised, because the caller
        is already handling the original error.

        Args:
            name: Storage key to delete.
        """
        logger.warning('Rolling back stored content: %s', name)
        try:
            self.delete(name)
        except Exception:
            logger.exception('Rollback failed, orphaned content: %s', name)
