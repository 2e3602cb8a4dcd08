"""Upload collaborator: stores file contents and describes the result.

Uploading only puts bytes into object storage. The returned record is
handed to the catalog (``add_files``), whose persistence step registers
it in the database and counts it against the quota.
"""

import logging
from typing import TYPE_CHECKING, Any, BinaryIO

from django.core.files.storage import default_storage

from server.apps.catalog.infrastructure.metadata import (
    calculate_checksum,
    detect_mime_type,
    get_file_size,
)
from server.apps.catalog.logic.quota_operations import check_quota
from server.apps.catalog.logic.records import (
    ROOT,
    FileRecord,
    new_record_id,
    utc_now,
)
from server.apps.catalog.logic.updates import clean_name

if TYPE_CHECKING:
    from server.apps.catalog.infrastructure.storage import FileStorage

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


def _get_storage() -> 'FileStorage':
    """Get the configured default storage backend.

    Returns:
        FileStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]


def build_storage_key(user_id: int, record_id: str, filename: str) -> str:
    """Build the storage key of an uploaded file.

    Keys carry the record id instead of the folder path, so renames and
    moves never touch storage.

    Args:
        user_id: Owner's user ID.
        record_id: Id of the catalog record.
        filename: Original filename.

    Returns:
        Key like ``'7/3f2a.../report.pdf'``.
    """
    return f'{user_id}/{record_id}/{filename}'


def upload_file(
    user: _User,
    file_obj: BinaryIO,
    filename: str,
    parent_id: str | None = ROOT,
) -> FileRecord:
    """Store a file's bytes and return the record describing them.

    Args:
        user: Uploading user.
        file_obj: File-like object to store.
        filename: Display name of the file.
        parent_id: Folder the file goes into, ``None`` for the root.

    Returns:
        FileRecord ready for ``Catalog.add_files``.

    Raises:
        ValidationError: If the filename is blank.
        QuotaExceededError: If the file does not fit into the quota.
        Exception: If storing the bytes fails.
    """
    name = clean_name(filename)
    size = get_file_size(file_obj)
    check_quota(user, size)

    record_id = new_record_id()
    mime_type = detect_mime_type(name)
    checksum = calculate_checksum(file_obj)

    storage_key = build_storage_key(user.id, record_id, name)
    logger.info('Uploading %s (%d bytes) for user %s', name, size, user.id)
    saved_key = _get_storage().save(storage_key, file_obj)

    return FileRecord(
        id=record_id,
        name=name,
        is_folder=False,
        parent_id=parent_id,
        size=size,
        last_modified=utc_now(),
        mime_type=mime_type,
        locator=saved_key,
        checksum=checksum,
    )


def discard_upload(record: FileRecord) -> None:
    """Remove stored bytes of an upload that never made it into the catalog.

    Args:
        record: Record returned by ``upload_file``.
    """
    if record.locator:
        _get_storage().rollback_upload(record.locator)
