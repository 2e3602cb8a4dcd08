"""Shared fixtures for catalog app tests."""

import asyncio
import itertools
from datetime import UTC, datetime

import boto3
import pytest
from django.contrib.auth import get_user_model
from django.core.files.base import ContentFile
from moto import mock_aws

from server.apps.catalog.logic.catalog import Catalog
from server.apps.catalog.logic.notifications import SessionContext
from server.apps.catalog.logic.records import FileRecord
from server.apps.catalog.logic.session import CatalogSession

User = get_user_model()

NOW = datetime(2024, 2, 1, 12, 0, tzinfo=UTC)


def _make_record(record_id, name, **fields):
    """Build a FileRecord with sensible defaults for tests.

    Returns:
        FileRecord instance.
    """
    fields.setdefault('is_folder', False)
    fields.setdefault('last_modified', NOW)
    return FileRecord(id=record_id, name=name, **fields)


def _day(day):
    return datetime(2024, 1, day, tzinfo=UTC)


class FakeBackend:
    """In-memory storage backend with controllable latency and failures."""

    def __init__(self, listings=None):
        self.listings = dict(listings or {})
        self.gates = {}
        self.calls = []
        self.stamps = {}
        self.fetch_error = None
        self.persist_error = None

    def hold(self, folder_id):
        """Make fetches of ``folder_id`` wait until the event is set.

        Returns:
            asyncio.Event releasing the fetch.
        """
        gate = asyncio.Event()
        self.gates[folder_id] = gate
        return gate

    async def fetch_children(self, folder_id):
        self.calls.append(('fetch', folder_id))
        gate = self.gates.get(folder_id)
        if gate is not None:
            await gate.wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.listings.get(folder_id, []))

    async def persist_create(self, record):
        await self._persist(('create', record.id))
        return record

    async def persist_mutate(self, record_id, update, last_modified=None):
        self.stamps[record_id] = last_modified
        await self._persist(('mutate', record_id, update))

    async def persist_delete(self, record_id):
        await self._persist(('delete', record_id))

    async def _persist(self, call):
        # Yield so queued calls really interleave with the caller
        await asyncio.sleep(0)
        self.calls.append(call)
        if self.persist_error is not None:
            raise self.persist_error


class RecordingNotifier:
    """Notifier collecting outcomes for assertions."""

    def __init__(self):
        self.successes = []
        self.failures = []

    def success(self, message):
        self.successes.append(message)

    def failure(self, message, error):
        self.failures.append((message, error))


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for isolation tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def mock_s3():
    """Mock S3 service with catalog-files bucket.

    Yields:
        boto3 S3 resource with catalog-files bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket='catalog-files')
        yield conn


@pytest.fixture
def sample_file_content():
    """Sample file content for testing.

    Returns:
        ContentFile with test data.
    """
    return ContentFile(b'test file content', name='test.txt')


@pytest.fixture
def sample_records():
    """Small catalog: six top-level records and two files in a folder.

    Returns:
        List of FileRecord instances.
    """
    return [
        _make_record(
            '1',
            'Project Presentation.pptx',
            size=15728640,
            mime_type='application/vnd.ms-powerpoint',
            last_modified=_day(15),
            is_starred=True,
            tags=('work', 'presentation'),
        ),
        _make_record(
            '2',
            'Design Assets',
            is_folder=True,
            mime_type='folder',
            last_modified=_day(14),
            is_shared=True,
        ),
        _make_record(
            '3',
            'vacation-photos.zip',
            size=524288000,
            mime_type='application/zip',
            last_modified=_day(13),
            tags=('personal', 'photos'),
        ),
        _make_record(
            '4',
            'Budget 2024.xlsx',
            size=2097152,
            mime_type='application/vnd.ms-excel',
            last_modified=_day(12),
            is_starred=True,
            tags=('finance',),
        ),
        _make_record(
            '5',
            'Meeting Notes.docx',
            size=1048576,
            mime_type='application/msword',
            last_modified=_day(11),
            tags=('work', 'notes'),
        ),
        _make_record(
            '6',
            'Profile Picture.jpg',
            size=3145728,
            mime_type='image/jpeg',
            last_modified=_day(10),
            tags=('personal',),
        ),
        _make_record(
            '7',
            'Logo.svg',
            size=45678,
            mime_type='image/svg+xml',
            last_modified=_day(9),
            parent_id='2',
        ),
        _make_record(
            '8',
            'Brand Guidelines.pdf',
            size=8765432,
            mime_type='application/pdf',
            last_modified=_day(8),
            parent_id='2',
        ),
    ]


@pytest.fixture
def catalog(sample_records):
    """Catalog seeded with the sample records and a frozen clock.

    New folders get ids ``new-1``, ``new-2``...

    Returns:
        Catalog instance.
    """
    counter = itertools.count(1)
    return Catalog(
        sample_records,
        clock=lambda: NOW,
        id_factory=lambda: f'new-{next(counter)}',
    )


@pytest.fixture
def backend():
    """In-memory storage backend.

    Returns:
        FakeBackend instance.
    """
    return FakeBackend()


@pytest.fixture
def notifier():
    """Notifier recording every outcome.

    Returns:
        RecordingNotifier instance.
    """
    return RecordingNotifier()


@pytest.fixture
def session(catalog, backend, notifier):
    """Session over the sample catalog and the in-memory backend.

    Returns:
        CatalogSession instance.
    """
    return CatalogSession(
        SessionContext(user=None, notifier=notifier),
        backend,
        catalog,
    )


@pytest.fixture
def make_record():
    """Factory of FileRecords dated ``NOW`` unless told otherwise.

    Returns:
        Callable ``(record_id, name, **fields) -> FileRecord``.
    """
    return _make_record


@pytest.fixture
def now():
    """Time returned by the catalog fixture's clock.

    Returns:
        Aware datetime.
    """
    return NOW
