"""Metadata helpers for uploaded files."""

import hashlib
import mimetypes
from pathlib import Path
from typing import BinaryIO, Final

_CHUNK_SIZE: Final = 8192  # 8KB chunks for checksum calculation
_DEFAULT_MIME_TYPE: Final = 'application/octet-stream'

_SIZE_UNIT_STEP: Final = 1024
_SIZE_UNITS: Final = ('Bytes', 'KB', 'MB', 'GB', 'TB')

# Checked in order; first match wins
_CATEGORY_MARKERS: Final = (
    ('images', ('image/',)),
    ('videos', ('video/',)),
    ('audio', ('audio/',)),
    ('archives', ('zip', 'rar', 'tar', 'gzip', '7z', 'compressed')),
    (
        'documents',
        (
            'text/',
            'pdf',
            'word',
            'document',
            'sheet',
            'excel',
            'powerpoint',
            'presentation',
        ),
    ),
)

CATEGORIES: Final = (*(name for name, _ in _CATEGORY_MARKERS), 'other')


def detect_mime_type(filename: str) -> str:
    """Guess MIME type from the filename extension.

    Args:
        filename: Filename with extension.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or _DEFAULT_MIME_TYPE


def calculate_checksum(file_obj: BinaryIO) -> str:
    """Calculate SHA256 checksum of file.

    Reads in chunks and rewinds the file before and after.

    Args:
        file_obj: File-like object to checksum.

    Returns:
        Hex-encoded SHA256 hash string.
    """
    sha256_hash = hashlib.sha256()
    file_obj.seek(0)
    for chunk in iter(lambda: file_obj.read(_CHUNK_SIZE), b''):
        sha256_hash.update(chunk)
    file_obj.seek(0)
    return sha256_hash.hexdigest()


def get_file_size(file_obj: BinaryIO) -> int:
    """Get size of a file object without consuming it.

    Args:
        file_obj: File-like object, optionally exposing ``size``.

    Returns:
        Size in bytes.
    """
    size = getattr(file_obj, 'size', None)
    if size is not None:
        return size
    file_obj.seek(0, 2)
    size = file_obj.tell()
    file_obj.seek(0)
    return size


def get_file_extension(filename: str) -> str:
    """Get file extension from filename.

    Args:
        filename: Filename (e.g., 'document.PDF').

    Returns:
        Extension without dot, lowercase (e.g., 'pdf').
        Returns empty string if no extension.
    """
    return Path(filename).suffix.lstrip('.').lower()


def file_category(mime_type: str) -> str:
    """Bucket a MIME type into a storage breakdown category.

    Args:
        mime_type: MIME type of a file.

    Returns:
        One of ``CATEGORIES``.
    """
    lowered = mime_type.lower()
    for category, markers in _CATEGORY_MARKERS:
        if any(marker in lowered for marker in markers):
            return category
    return 'other'


def format_file_size(size_bytes: int) -> str:
    """Format bytes for display.

    Example: 0 -> '0 Bytes', 1536 -> '1.5 KB', 1048576 -> '1 MB'.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Size with at most two decimals and a binary unit.
    """
    if size_bytes <= 0:
        return '0 Bytes'
    value = float(size_bytes)
    unit = 0
    while value >= _SIZE_UNIT_STEP and unit < len(_SIZE_UNITS) - 1:
        value /= _SIZE_UNIT_STEP
        unit += 1
    return f'{round(value, 2):g} {_SIZE_UNITS[unit]}'
