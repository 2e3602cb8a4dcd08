"""Tests for the upload collaborator."""

import hashlib

import pytest
from django.core.files.base import ContentFile

from server.apps.catalog.exceptions import QuotaExceededError, ValidationError
from server.apps.catalog.logic.upload_operations import (
    build_storage_key,
    discard_upload,
    upload_file,
)
from server.apps.catalog.models import StorageQuota


def _stored_keys(mock_s3):
    return [obj.key for obj in mock_s3.Bucket('catalog-files').objects.all()]


def test_build_storage_key():
    """Test keys are scoped by user and record id."""
    assert build_storage_key(7, 'abc', 'report.pdf') == '7/abc/report.pdf'


@pytest.mark.django_db
class TestUploadFile:
    """Tests for upload_file."""

    def test_upload_stores_bytes_and_describes_them(
        self,
        user,
        mock_s3,
        sample_file_content,
    ):
        """Test bytes land in storage and the record carries metadata."""
        record = upload_file(user, sample_file_content, 'notes.txt', '2')

        assert record.name == 'notes.txt'
        assert record.is_folder is False
        assert record.parent_id == '2'
        assert record.size == len(b'test file content')
        assert record.mime_type == 'text/plain'
        assert record.checksum == hashlib.sha256(
            b'test file content',
        ).hexdigest()
        assert record.locator == f'{user.id}/{record.id}/notes.txt'
        assert _stored_keys(mock_s3) == [record.locator]

    def test_upload_does_not_touch_usage(self, user, mock_s3):
        """Test usage is only counted once the record is persisted."""
        upload_file(user, ContentFile(b'12345'), 'a.bin')

        assert StorageQuota.objects.get(user=user).used_bytes == 0

    def test_upload_trims_name(self, user, mock_s3):
        """Test filenames are trimmed like catalog names."""
        record = upload_file(user, ContentFile(b'x'), '  photo.png ')

        assert record.name == 'photo.png'
        assert record.mime_type == 'image/png'

    def test_blank_name_rejected(self, user, mock_s3):
        """Test blank filenames are refused before storing."""
        with pytest.raises(ValidationError):
            upload_file(user, ContentFile(b'x'), '   ')

        assert _stored_keys(mock_s3) == []

    def test_quota_exceeded(self, user, mock_s3):
        """Test uploads over the limit are refused before storing."""
        StorageQuota.objects.create(user=user, limit_bytes=3, used_bytes=0)

        with pytest.raises(QuotaExceededError):
            upload_file(user, ContentFile(b'12345'), 'big.bin')

        assert _stored_keys(mock_s3) == []


@pytest.mark.django_db
def test_discard_upload_removes_bytes(user, mock_s3):
    """Test discarded uploads leave no object behind."""
    record = upload_file(user, ContentFile(b'data'), 'tmp.txt')

    discard_upload(record)

    assert _stored_keys(mock_s3) == []
