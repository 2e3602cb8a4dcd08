"""Database models for catalog app."""

from typing import Final, final, override

from django.conf import settings
from django.db import models

from server.apps.catalog.logic.records import FOLDER_TYPE, FileRecord

# Constants for field max lengths
_ID_MAX_LENGTH: Final = 32  # uuid4 hex
_NAME_MAX_LENGTH: Final = 255
_MIME_TYPE_MAX_LENGTH: Final = 255
_CONTENT_MAX_LENGTH: Final = 1024
_CHECKSUM_MAX_LENGTH: Final = 64  # SHA256 hex length

# Default limit when settings do not provide one: 10 GiB in bytes
_DEFAULT_LIMIT_BYTES: Final = 10 * 1024 * 1024 * 1024


@final
class CatalogEntry(models.Model):
    """Persisted form of a catalog record.

    Folders and files share one table; ``parent`` is a self reference and
    deleting a folder cascades to everything below it at the database
    level. File bytes live in object storage under ``content``.
    """

    id = models.CharField(
        primary_key=True,
        max_length=_ID_MAX_LENGTH,
        editable=False,
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='catalog_entries',
        db_index=True,
    )

    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        related_name='children',
        null=True,
        blank=True,
        help_text='Containing folder; empty for top-level entries',
    )

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    is_folder = models.BooleanField(default=False)

    size_bytes = models.BigIntegerField(
        default=0,
        help_text='File size in bytes (always 0 for folders)',
    )

    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        blank=True,
        default='',
    )

    tags = models.JSONField(default=list, blank=True)

    is_starred = models.BooleanField(default=False)
    is_shared = models.BooleanField(default=False)

    # upload_to='' means the upload collaborator controls the full key
    content = models.FileField(
        upload_to='',
        max_length=_CONTENT_MAX_LENGTH,
        blank=True,
        help_text='Storage key: {user_id}/{entry_id}/filename',
    )

    checksum_sha256 = models.CharField(
        max_length=_CHECKSUM_MAX_LENGTH,
        blank=True,
        default='',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    modified_at = models.DateTimeField()

    class Meta:
        """Model metadata."""

        verbose_name = 'Catalog entry'  # type: ignore[mutable-override]
        verbose_name_plural = 'Catalog entries'  # type: ignore[mutable-override]
        ordering = ['created_at']

        indexes = [
            # Folder listings
            models.Index(
                fields=['user', 'parent'],
                name='catalog_user_parent_idx',
            ),
        ]

        constraints = [
            models.CheckConstraint(
                condition=models.Q(size_bytes__gte=0),
                name='catalog_size_non_negative',
            ),
            models.CheckConstraint(
                condition=models.Q(is_folder=False) | models.Q(size_bytes=0),
                name='catalog_folder_size_zero',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        kind = 'folder' if self.is_folder else 'file'
        return f'{self.user_id}:{kind}:{self.name}'

    def to_record(self) -> FileRecord:
        """Convert to the catalog's in-memory record.

        Returns:
            FileRecord carrying the same values.
        """
        return FileRecord(
            id=self.id,
            name=self.name,
            is_folder=self.is_folder,
            parent_id=self.parent_id,
            size=self.size_bytes,
            last_modified=self.modified_at,
            mime_type=FOLDER_TYPE if self.is_folder else self.mime_type,
            tags=tuple(self.tags),
            is_starred=self.is_starred,
            is_shared=self.is_shared,
            locator=self.content.name or '',
            checksum=self.checksum_sha256,
        )

    @classmethod
    def from_record(cls, record: FileRecord, user: object) -> 'CatalogEntry':
        """Build an unsaved entry from a catalog record.

        Args:
            record: Record to persist.
            user: Owner of the entry.

        Returns:
            New CatalogEntry (not saved).
        """
        return cls(
            id=record.id,
            user=user,
            parent_id=record.parent_id,
            name=record.name,
            is_folder=record.is_folder,
            size_bytes=record.size,
            mime_type=record.mime_type,
            tags=list(record.tags),
            is_starred=record.is_starred,
            is_shared=record.is_shared,
            content=record.locator,
            checksum_sha256=record.checksum,
            modified_at=record.last_modified,
        )


@final
class StorageQuota(models.Model):
    """Storage limit and current usage of a user.

    Usage counts the bytes of every stored file. Folders are free. Users
    over their limit can still browse, move and delete, but new uploads
    are refused.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='storage_quota',
        primary_key=True,
    )

    limit_bytes = models.BigIntegerField(
        default=_DEFAULT_LIMIT_BYTES,
        help_text='Storage limit in bytes',
    )

    used_bytes = models.BigIntegerField(
        default=0,
        help_text='Bytes currently stored',
    )

    class Meta:
        """Model metadata."""

        verbose_name = 'Storage quota'  # type: ignore[mutable-override]
        verbose_name_plural = 'Storage quotas'  # type: ignore[mutable-override]

        constraints = [
            models.CheckConstraint(
                condition=models.Q(limit_bytes__gte=0),
                name='quota_limit_non_negative',
            ),
            models.CheckConstraint(
                condition=models.Q(used_bytes__gte=0),
                name='quota_used_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}: {self.used_bytes}/{self.limit_bytes}'

    def has_space_for(self, size_bytes: int) -> bool:
        """Check whether ``size_bytes`` more would still fit."""
        return self.used_bytes + size_bytes <= self.limit_bytes

    def available_bytes(self) -> int:
        """Remaining space in bytes (never negative)."""
        return max(0, self.limit_bytes - self.used_bytes)

    def percentage_used(self) -> float:
        """Share of the limit in use, 0-100 (may exceed 100 when over).

        Returns:
            Percentage as float; 0.0 for a zero limit.
        """
        if self.limit_bytes == 0:
            return 0.0
        return self.used_bytes / self.limit_bytes * 100
