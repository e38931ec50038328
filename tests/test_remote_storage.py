"""Tests for the multi-device storage backend.

Each test drives one ``asyncio.run`` scenario against a SQLite file.
"""

import asyncio
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

import pytest
from sqlalchemy.exc import IntegrityError

from bookshelf.models import Book, ChangeEvent, ReadingStatus, create_book
from bookshelf.storage import (
    AuthSession,
    BackendError,
    InvalidUpdateError,
    LocalBookStorage,
    MemoryKeyValueStore,
    NotAuthenticatedError,
    Principal,
    RemoteBackend,
    RemoteBookStorage,
    UnsupportedOperationError,
)
from bookshelf.storage.schema import BookRow

OpenBackend = Callable[..., AbstractAsyncContextManager[RemoteBackend]]


def _book(title: str, status: str = "want_to_read", **fields: object) -> Book:
    return create_book({"title": title, "author": "Author", "status": status, **fields})


async def _signed_in(backend: RemoteBackend, email: str) -> RemoteBookStorage:
    principal = await backend.register_user(email)
    return RemoteBookStorage(backend, AuthSession(principal))


class TestAuthentication:
    def test_reads_without_principal_are_empty(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                storage = RemoteBookStorage(backend, AuthSession())
                assert await storage.get_all() == []
                assert await storage.get_by_status("read") == []

        asyncio.run(scenario())

    def test_writes_without_principal_rejected(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                storage = RemoteBookStorage(backend, AuthSession())
                with pytest.raises(NotAuthenticatedError):
                    await storage.add(_book("A"))
                with pytest.raises(NotAuthenticatedError):
                    await storage.update("b1", {"rating": 3})
                with pytest.raises(NotAuthenticatedError):
                    await storage.delete("b1")
                with pytest.raises(NotAuthenticatedError):
                    storage.subscribe(lambda event: None)

        asyncio.run(scenario())

    def test_sign_out_stops_access(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                auth = AuthSession(await backend.register_user("ana@example.com"))
                storage = RemoteBookStorage(backend, auth)
                await storage.add(_book("A"))

                auth.sign_out()
                assert await storage.get_all() == []
                with pytest.raises(NotAuthenticatedError):
                    await storage.add(_book("B"))

        asyncio.run(scenario())

    def test_register_user_is_idempotent(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                first = await backend.register_user("ana@example.com")
                second = await backend.register_user("ana@example.com")
                assert first == second

        asyncio.run(scenario())


class TestRemoteCrud:
    def test_add_assigns_server_id_and_timestamps(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                storage = await _signed_in(backend, "ana@example.com")
                book = _book("A", createdAt=1, updatedAt=1)

                stored = await storage.add(book)
                assert stored.id != book.id
                assert stored.created_at > 1
                assert stored.updated_at > 1
                assert stored.title == "A"
                assert await storage.get_all() == [stored]

        asyncio.run(scenario())

    def test_null_rating_and_finished_at_survive(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                storage = await _signed_in(backend, "ana@example.com")
                stored = await storage.add(_book("A", rating=None, finishedAt=None))

                [loaded] = await storage.get_all()
                assert loaded.rating is None
                assert loaded.finished_at is None
                assert loaded == stored

        asyncio.run(scenario())

    def test_finished_at_kept_to_the_millisecond(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                storage = await _signed_in(backend, "ana@example.com")
                stored = await storage.add(_book("A", "read", rating=5, finishedAt=1_700_000_000_123))
                assert stored.finished_at == 1_700_000_000_123
                assert stored.rating == 5

        asyncio.run(scenario())

    def test_newest_first(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                storage = await _signed_in(backend, "ana@example.com")
                for title in ("A", "B", "C"):
                    await storage.add(_book(title))

                assert [book.title for book in await storage.get_all()] == ["C", "B", "A"]

        asyncio.run(scenario())

    def test_get_by_status_is_ordered_subset(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                storage = await _signed_in(backend, "ana@example.com")
                for title, status in (("A", "read"), ("B", "want_to_read"), ("C", "read")):
                    await storage.add(_book(title, status))

                everything = await storage.get_all()
                read = await storage.get_by_status(ReadingStatus.READ)
                assert read == [book for book in everything if book.status is ReadingStatus.READ]
                assert await storage.get_by_status("lost") == []

        asyncio.run(scenario())

    def test_update_and_delete(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                storage = await _signed_in(backend, "ana@example.com")
                stored = await storage.add(_book("A"))

                updated = await storage.update(stored.id, {"rating": 4, "coverUrl": "a.jpg"})
                assert updated is not None
                assert updated.rating == 4
                assert updated.cover_url == "a.jpg"
                assert updated.created_at == stored.created_at
                assert updated.updated_at >= stored.updated_at

                assert await storage.delete(stored.id) is True
                assert await storage.get_all() == []

        asyncio.run(scenario())

    def test_missing_ids(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                storage = await _signed_in(backend, "ana@example.com")
                stored = await storage.add(_book("A"))

                assert await storage.update("nope", {"rating": 1}) is None
                assert await storage.delete("nope") is False
                assert await storage.get_all() == [stored]

        asyncio.run(scenario())

    def test_out_of_range_rating_rejected_by_schema(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                principal = await backend.register_user("ana@example.com")
                async with backend.session() as db:
                    db.add(BookRow(user_id=principal.id, title="A", author="B", rating=6))
                    with pytest.raises(IntegrityError):
                        await db.commit()

                storage = RemoteBookStorage(backend, AuthSession(principal))
                assert await storage.get_all() == []

        asyncio.run(scenario())

    def test_bulk_operations_unsupported(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                storage = await _signed_in(backend, "ana@example.com")
                with pytest.raises(UnsupportedOperationError):
                    storage.export_books()
                with pytest.raises(UnsupportedOperationError):
                    storage.import_books("[]")
                with pytest.raises(UnsupportedOperationError):
                    storage.clear()

        asyncio.run(scenario())


class TestInvalidUpdates:
    """Both backends reject the same invalid updates the same way."""

    @pytest.mark.parametrize("updates", [{"status": "bogus"}, {"rating": 9}, {"rating": 0}])
    def test_rejected_on_both_backends(self, open_backend: OpenBackend, updates: dict) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                remote = await _signed_in(backend, "ana@example.com")
                local = LocalBookStorage(MemoryKeyValueStore())

                for storage in (local, remote):
                    stored = await storage.add(_book("A"))
                    with pytest.raises(InvalidUpdateError):
                        await storage.update(stored.id, updates)
                    assert await storage.get_all() == [stored]

        asyncio.run(scenario())

    def test_no_change_published_for_rejected_update(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                storage = await _signed_in(backend, "ana@example.com")
                stored = await storage.add(_book("A"))
                events: list[ChangeEvent] = []
                storage.subscribe(events.append)

                with pytest.raises(InvalidUpdateError):
                    await storage.update(stored.id, {"status": "bogus"})
                assert events == []

        asyncio.run(scenario())


class TestRemoteStatusTransitions:
    def test_finishing_then_editing(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                storage = await _signed_in(backend, "ana@example.com")
                stored = await storage.add(_book("A", "currently_reading"))

                finished = await storage.update(stored.id, {"status": "read"})
                assert finished is not None
                assert finished.finished_at is not None

                edited = await storage.update(stored.id, {"status": "read", "review": "Loved it"})
                assert edited is not None
                assert edited.finished_at == finished.finished_at

                moved = await storage.update(stored.id, {"status": "want_to_read"})
                assert moved is not None
                assert moved.finished_at == finished.finished_at

        asyncio.run(scenario())


class TestOwnership:
    def test_principals_cannot_see_or_touch_each_others_books(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                ana = await _signed_in(backend, "ana@example.com")
                ben = await _signed_in(backend, "ben@example.com")
                book = await ana.add(_book("Ana's book"))
                await ben.add(_book("Ben's book"))

                assert [b.title for b in await ana.get_all()] == ["Ana's book"]
                assert [b.title for b in await ben.get_all()] == ["Ben's book"]
                assert await ben.update(book.id, {"rating": 1}) is None
                assert await ben.delete(book.id) is False
                assert await ana.get_all() == [book]

        asyncio.run(scenario())

    def test_unregistered_principal_cannot_write(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                storage = RemoteBookStorage(backend, AuthSession(Principal(id="ghost")))
                with pytest.raises(BackendError):
                    await storage.add(_book("A"))

        asyncio.run(scenario())


class TestBackendFailures:
    def test_missing_schema(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend(create_schema=False) as backend:
                storage = RemoteBookStorage(backend, AuthSession(Principal(id="u1")))
                assert await storage.get_all() == []
                with pytest.raises(BackendError):
                    await storage.add(_book("A"))
                with pytest.raises(BackendError):
                    await storage.delete("b1")

        asyncio.run(scenario())


class TestRemoteChangeFeed:
    def test_callback_sees_changes_in_order(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                storage = await _signed_in(backend, "ana@example.com")
                events: list[ChangeEvent] = []
                unsubscribe = storage.subscribe(events.append)

                book = await storage.add(_book("A"))
                await storage.update(book.id, {"rating": 2})
                await storage.delete(book.id)
                unsubscribe()
                await storage.add(_book("B"))

                assert [e.event_type for e in events] == ["INSERT", "UPDATE", "DELETE"]
                assert events[0].new == book
                assert events[1].old == book
                assert events[1].new is not None and events[1].new.rating == 2
                assert events[2].old is not None and events[2].old.id == book.id

        asyncio.run(scenario())

    def test_other_device_hears_changes(self, open_backend: OpenBackend) -> None:
        async def scenario() -> None:
            async with open_backend() as backend:
                principal = await backend.register_user("ana@example.com")
                phone = RemoteBookStorage(backend, AuthSession(principal))
                laptop = RemoteBookStorage(backend, AuthSession(principal))
                stranger = await _signed_in(backend, "ben@example.com")

                subscription = laptop.changes()
                heard_by_stranger: list[ChangeEvent] = []
                stranger.subscribe(heard_by_stranger.append)

                stored = await phone.add(_book("A"))
                change = await asyncio.wait_for(subscription.__anext__(), timeout=1)
                subscription.unsubscribe()

                assert change.event_type == "INSERT"
                assert change.new == stored
                assert heard_by_stranger == []
                assert await laptop.get_all() == [stored]

        asyncio.run(scenario())
