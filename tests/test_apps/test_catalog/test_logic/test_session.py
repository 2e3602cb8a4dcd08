"""Tests for the catalog session: listing guard, persistence, uploads."""

import asyncio

import pytest

from server.apps.catalog.exceptions import NotFoundError, ValidationError
from server.apps.catalog.logic import session as session_module
from server.apps.catalog.logic.notifications import (
    LoggingNotifier,
    SessionContext,
)
from server.apps.catalog.logic.records import SortOption
from server.apps.catalog.logic.session import CatalogSession, build_session
from server.apps.catalog.logic.updates import MoveUpdate, RenameUpdate


def _ids(records):
    return [record.id for record in records]


class TestOpenFolder:
    """Tests for CatalogSession.open_folder."""

    def test_listing_is_applied(self, session, backend, make_record):
        """Test a fetched listing replaces the folder's children."""
        backend.listings['2'] = [
            make_record('9', 'Palette.ase', parent_id='2', size=120),
        ]

        applied = asyncio.run(session.open_folder('2'))

        assert applied is True
        assert session.catalog.current_folder_id == '2'
        assert _ids(session.catalog.visible_children()) == ['9']
        assert session.is_loading is False

    def test_slow_listing_of_left_folder_is_discarded(
        self,
        session,
        backend,
        make_record,
    ):
        """Test a late response never overwrites the folder now shown."""
        backend.listings['2'] = [
            make_record('9', 'Palette.ase', parent_id='2', size=120),
        ]

        async def scenario():
            gate = backend.hold('2')
            slow = asyncio.create_task(session.open_folder('2'))
            await asyncio.sleep(0)
            assert session.is_loading is True

            applied_root = await session.open_folder(None)
            gate.set()
            return applied_root, await slow

        applied_root, applied_slow = asyncio.run(scenario())

        assert applied_root is True
        assert applied_slow is False
        assert session.catalog.current_folder_id is None
        assert '9' not in session.catalog

    def test_superseded_request_for_same_folder_is_discarded(
        self,
        session,
        backend,
    ):
        """Test only the latest request for a folder is applied."""

        async def scenario():
            gate = backend.hold('2')
            first = asyncio.create_task(session.open_folder('2'))
            await asyncio.sleep(0)
            backend.gates.pop('2')
            second = await session.open_folder('2')
            gate.set()
            return await first, second

        first, second = asyncio.run(scenario())

        assert (first, second) == (False, True)

    def test_failure_of_current_request_is_reported(
        self,
        session,
        backend,
        notifier,
    ):
        """Test fetch errors reach the notifier and the caller."""
        backend.fetch_error = RuntimeError('network down')

        with pytest.raises(RuntimeError, match='network down'):
            asyncio.run(session.open_folder('2'))

        assert notifier.failures[0][0] == 'Could not load folder'
        assert session.is_loading is False
        assert len(session.catalog) == 8

    def test_failure_of_stale_request_is_ignored(
        self,
        session,
        backend,
        notifier,
    ):
        """Test errors of abandoned fetches are not reported."""

        async def scenario():
            gate = backend.hold('2')
            slow = asyncio.create_task(session.open_folder('2'))
            await asyncio.sleep(0)
            await session.open_folder(None)
            backend.fetch_error = RuntimeError('late failure')
            gate.set()
            return await slow

        assert asyncio.run(scenario()) is False
        assert notifier.failures == []

    def test_unknown_folder_rejected_before_fetch(self, session, backend):
        """Test navigation validates the folder first."""
        with pytest.raises(NotFoundError):
            asyncio.run(session.open_folder('missing'))

        assert backend.calls == []


class TestPersistence:
    """Tests for mutations queued to the backend."""

    def test_create_folder_is_persisted(self, session, backend, notifier):
        """Test the local change is immediate and persistence follows."""

        async def scenario():
            folder = session.create_folder('Invoices')
            assert folder.id in session.catalog
            assert session.pending_writes == 1
            await session.drain()
            return folder

        folder = asyncio.run(scenario())

        assert backend.calls == [('create', folder.id)]
        assert notifier.successes == ['Folder "Invoices" created']
        assert session.pending_writes == 0

    def test_writes_keep_issue_order(self, session, backend):
        """Test queued calls reach the backend in the order issued."""

        async def scenario():
            folder = session.create_folder('Archive')
            session.move_file('1', folder.id)
            session.rename_file('1', 'Old deck.pptx')
            session.delete_file('3')
            await session.drain()
            return folder

        folder = asyncio.run(scenario())

        assert backend.calls == [
            ('create', folder.id),
            ('mutate', '1', MoveUpdate(parent_id=folder.id)),
            ('mutate', '1', RenameUpdate(name='Old deck.pptx')),
            ('delete', '3'),
        ]

    def test_batch_persists_parents_first(self, session, backend, make_record):
        """Test folders of a batch are stored before their contents."""

        async def scenario():
            session.add_files([
                make_record('f1', 'inside.txt', parent_id='d1', size=3),
                make_record('d1', 'Uploaded Folder', is_folder=True),
            ])
            await session.drain()

        asyncio.run(scenario())

        assert backend.calls == [('create', 'd1'), ('create', 'f1')]

    def test_failure_is_reported_without_rollback(
        self,
        session,
        backend,
        notifier,
    ):
        """Test backend errors are notified and the local change stays."""
        backend.persist_error = RuntimeError('disk full')

        async def scenario():
            session.delete_file('3')
            await session.drain()

        asyncio.run(scenario())

        assert '3' not in session.catalog
        (message, error) = notifier.failures[0]
        assert message == 'Could not delete "vacation-photos.zip"'
        assert str(error) == 'disk full'
        assert notifier.successes == []

    def test_validation_errors_raise_synchronously(self, session, backend):
        """Test invalid mutations never reach the backend."""

        async def scenario():
            with pytest.raises(ValidationError):
                session.create_folder('   ')
            await session.drain()

        asyncio.run(scenario())

        assert backend.calls == []

    def test_toggle_star(self, session, backend):
        """Test toggling flips the flag and persists it."""

        async def scenario():
            first = session.toggle_star('1')
            second = session.toggle_star('1')
            await session.drain()
            return first, second

        first, second = asyncio.run(scenario())

        assert first.is_starred is False
        assert second.is_starred is True
        assert len(backend.calls) == 2

    def test_updates_carry_the_catalog_stamp(self, session, backend, now):
        """Test the backend stores the time the catalog stamped."""

        async def scenario():
            renamed = session.rename_file('1', 'Deck.pptx')
            await session.drain()
            return renamed

        renamed = asyncio.run(scenario())

        assert renamed.last_modified == now
        assert backend.stamps['1'] == now


class TestUpload:
    """Tests for CatalogSession.upload."""

    def _uploader(self, make_record, record_id='u1'):
        calls = []

        def upload(user, file_obj, filename, parent_id):
            calls.append((user, filename, parent_id))
            return make_record(
                record_id,
                filename,
                parent_id=parent_id,
                size=5,
                mime_type='text/plain',
                locator=f'7/{record_id}/{filename}',
            )

        return upload, calls

    def test_upload_adds_record(self, catalog, backend, make_record):
        """Test the stored file is added and persisted."""
        uploader, calls = self._uploader(make_record)
        session = CatalogSession(
            SessionContext(user='owner'),
            backend,
            catalog,
            uploader=uploader,
        )

        async def scenario():
            record = await session.upload(object(), 'hello.txt', '2')
            await session.drain()
            return record

        record = asyncio.run(scenario())

        assert calls == [('owner', 'hello.txt', '2')]
        assert record.path == '/Design Assets/'
        assert catalog.records()[0].id == 'u1'
        assert backend.calls == [('create', 'u1')]

    def test_upload_into_unknown_folder_stores_nothing(
        self,
        catalog,
        backend,
        make_record,
    ):
        """Test the folder is checked before any bytes are stored."""
        uploader, calls = self._uploader(make_record)
        session = CatalogSession(
            SessionContext(user='owner'),
            backend,
            catalog,
            uploader=uploader,
        )

        with pytest.raises(NotFoundError):
            asyncio.run(session.upload(object(), 'hello.txt', 'missing'))

        assert calls == []

    def test_rejected_upload_is_discarded(
        self,
        catalog,
        backend,
        make_record,
        monkeypatch,
    ):
        """Test stored bytes are removed when the record is refused."""
        uploader, _ = self._uploader(make_record, record_id='1')
        discarded = []

        def discard(record):
            discarded.append(record)

        monkeypatch.setattr(session_module, 'discard_upload', discard)
        session = CatalogSession(
            SessionContext(user='owner'),
            backend,
            catalog,
            uploader=uploader,
        )

        with pytest.raises(ValidationError):
            asyncio.run(session.upload(object(), 'dup.txt'))

        assert _ids(discarded) == ['1']
        assert backend.calls == []


class TestBuildSession:
    """Tests for build_session."""

    def test_settings_drive_defaults(self, settings, backend):
        """Test root label and sort come from settings."""
        settings.CATALOG_ROOT_LABEL = 'My Files'
        settings.CATALOG_DEFAULT_SORT_FIELD = 'size'
        settings.CATALOG_DEFAULT_SORT_DIRECTION = 'desc'

        session = build_session(user=object(), backend=backend)

        assert session.catalog.breadcrumbs(None)[0].name == 'My Files'
        assert session.catalog.sort_option == SortOption('size', 'desc')
        assert isinstance(session.notifier, LoggingNotifier)
        assert len(session.catalog) == 0
