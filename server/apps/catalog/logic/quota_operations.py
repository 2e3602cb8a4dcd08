"""Business logic for storage quota operations."""

import logging
from typing import Any, Final

from django.conf import settings
from django.db import transaction
from django.db.models import F, Sum  # noqa: WPS347

from server.apps.catalog.exceptions import QuotaExceededError
from server.apps.catalog.infrastructure.metadata import (
    CATEGORIES,
    file_category,
)
from server.apps.catalog.models import CatalogEntry, StorageQuota

# User type for Django's dynamic user model
_User = Any

_USED_BYTES_FIELD: Final = 'used_bytes'  # noqa: WPS226

logger = logging.getLogger(__name__)


def get_default_limit() -> int:
    """Get the storage limit for users without an explicit quota.

    Returns:
        Limit in bytes from settings, 10 GiB by default.
    """
    return getattr(
        settings,
        'CATALOG_DEFAULT_QUOTA_BYTES',
        10 * 1024 * 1024 * 1024,
    )


def get_or_create_quota(user: _User) -> StorageQuota:
    """Get the user's quota, creating it with the default limit if missing.

    Args:
        user: Quota owner.

    Returns:
        StorageQuota instance.
    """
    quota, created = StorageQuota.objects.get_or_create(
        user=user,
        defaults={'limit_bytes': get_default_limit()},
    )
    if created:
        logger.info(
            'Created storage quota for user %s: %d bytes',
            user.username,
            quota.limit_bytes,
        )
    return quota


def check_quota(user: _User, size_bytes: int) -> None:
    """Make sure ``size_bytes`` more bytes fit into the user's quota.

    Args:
        user: Uploading user.
        size_bytes: Size of the pending upload.

    Raises:
        QuotaExceededError: If the upload would exceed the limit.
    """
    quota = get_or_create_quota(user)
    if quota.has_space_for(size_bytes):
        return

    logger.warning(
        'Quota exceeded for user %s: need %d, have %d available',
        user.username,
        size_bytes,
        quota.available_bytes(),
    )
    raise QuotaExceededError(
        limit_bytes=quota.limit_bytes,
        used_bytes=quota.used_bytes,
        required_bytes=size_bytes,
    )


def increment_usage(user: _User, size_bytes: int) -> None:
    """Add ``size_bytes`` to the user's usage if they still fit.

    The quota row stays locked between the check and the update.

    Args:
        user: Quota owner.
        size_bytes: Bytes added.

    Raises:
        QuotaExceededError: If the bytes would exceed the limit.
    """
    if size_bytes <= 0:
        return

    get_or_create_quota(user)
    with transaction.atomic():
        quota = StorageQuota.objects.select_for_update().get(user=user)
        if not quota.has_space_for(size_bytes):
            logger.warning(
                'Quota exceeded for user %s on write: need %d, have %d',
                user.username,
                size_bytes,
                quota.available_bytes(),
            )
            raise QuotaExceededError(
                limit_bytes=quota.limit_bytes,
                used_bytes=quota.used_bytes,
                required_bytes=size_bytes,
            )
        StorageQuota.objects.filter(pk=quota.pk).update(
            used_bytes=F(_USED_BYTES_FIELD) + size_bytes,
        )
    logger.debug(
        'Usage of user %s increased by %d bytes',
        user.username,
        size_bytes,
    )


def decrement_usage(user: _User, size_bytes: int) -> None:
    """Subtract ``size_bytes`` from the user's usage, never below zero.

    Args:
        user: Quota owner.
        size_bytes: Bytes released.
    """
    if size_bytes <= 0:
        return

    with transaction.atomic():
        quota = (
            StorageQuota.objects.select_for_update()
            .filter(user=user)
            .first()
        )
        if quota is None:
            logger.debug(
                'No quota for user %s, nothing to release',
                user.username,
            )
            return
        quota.used_bytes = max(0, quota.used_bytes - size_bytes)
        quota.save(update_fields=[_USED_BYTES_FIELD])

    logger.debug(
        'Usage of user %s decreased by %d bytes (now %d)',
        user.username,
        size_bytes,
        quota.used_bytes,
    )


def calculate_usage(user: _User) -> int:
    """Sum the sizes of all stored files of a user.

    Args:
        user: Owner of the entries.

    Returns:
        Total bytes.
    """
    return CatalogEntry.objects.filter(
        user=user,
        is_folder=False,
    ).aggregate(total=Sum('size_bytes'))['total'] or 0


def recalculate_usage(user: _User) -> int:
    """Reset the user's usage to the real total of stored files.

    Args:
        user: Quota owner.

    Returns:
        New usage in bytes.
    """
    total = calculate_usage(user)
    with transaction.atomic():
        quota = get_or_create_quota(user)
        previous = quota.used_bytes
        quota.used_bytes = total
        quota.save(update_fields=[_USED_BYTES_FIELD])

    logger.info(
        'Recalculated usage for user %s: %d -> %d bytes',
        user.username,
        previous,
        total,
    )
    return total


def usage_breakdown(user: _User) -> dict[str, int]:
    """Bytes stored per file category (images, videos, documents...).

    Args:
        user: Owner of the entries.

    Returns:
        Mapping of every category in ``CATEGORIES`` to its byte total.
    """
    breakdown = dict.fromkeys(CATEGORIES, 0)
    entries = CatalogEntry.objects.filter(
        user=user,
        is_folder=False,
    ).values_list('mime_type', 'size_bytes')
    for mime_type, size_bytes in entries:
        breakdown[file_category(mime_type)] += size_bytes
    return breakdown
