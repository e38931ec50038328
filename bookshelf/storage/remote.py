"""Multi-device storage on an async SQL database.

Every read and write is scoped to the rows owned by the signed-in
principal. Reads degrade to an empty list on failure; writes raise, since
a silent failure here could hide data loss across devices.
"""

import logging
from pathlib import Path
from typing import Any, Mapping

from sqlalchemy import event, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from bookshelf.config import AppConfig
from bookshelf.models import Book, ChangeEvent, ReadingStatus, merge_updates
from bookshelf.storage.auth import AuthSession, Principal
from bookshelf.storage.base import BookStorage, ChangeCallback, Unsubscribe
from bookshelf.storage.errors import BackendError, InvalidUpdateError, NotAuthenticatedError
from bookshelf.storage.feed import ChangeFeed, Subscription
from bookshelf.storage.mapping import SERVER_MANAGED_COLUMNS, book_to_row_values, row_to_book, to_remote
from bookshelf.storage.schema import Base, BookRow, UserRow, utcnow

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class RemoteBackend:
    """Shared connection to the remote database plus its change feed.

    One instance stands for one deployed backend; every client storage
    created over it sees the same rows and the same change feed.

    Args:
        database_url: SQLAlchemy async URL, e.g. ``sqlite+aiosqlite:///remote.db``.
        echo: Log emitted SQL.
        feed_queue_size: Buffer size of each change feed subscription.
    """

    def __init__(self, database_url: str, echo: bool = False, feed_queue_size: int = 100) -> None:
        self._engine = create_async_engine(database_url, echo=echo)
        if self._engine.dialect.name == "sqlite":
            event.listen(self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        self._session_maker = async_sessionmaker(self._engine, expire_on_commit=False)
        self.feed = ChangeFeed(queue_size=feed_queue_size)

    @classmethod
    def from_config(cls, config: AppConfig) -> "RemoteBackend":
        return cls(
            config.remote.database_url,
            echo=config.remote.echo,
            feed_queue_size=config.remote.feed_queue_size,
        )

    def session(self) -> AsyncSession:
        return self._session_maker()

    async def create_schema(self) -> None:
        """Create the tables if they don't exist."""
        url = self._engine.url
        if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    async def register_user(self, email: str, user_id: str | None = None) -> Principal:
        """Provision a principal row, or return the one already using ``email``.

        Raises:
            BackendError: If the row could not be written.
        """
        try:
            async with self.session() as db:
                result = await db.execute(select(UserRow).where(UserRow.email == email))
                user = result.scalars().first()
                if user is None:
                    user = UserRow(email=email)
                    if user_id:
                        user.id = user_id
                    db.add(user)
                    await db.commit()
                    await db.refresh(user)
        except SQLAlchemyError as exc:
            logger.exception("Error registering user %s", email)
            raise BackendError(f"Could not register user {email}") from exc
        return Principal(id=user.id, email=user.email)


class RemoteBookStorage(BookStorage):
    """Storage backend over ``RemoteBackend``, scoped to one principal.

    Records come back newest first. Ids and created/updated timestamps are
    assigned by the backend.

    Args:
        backend: The shared remote backend.
        auth: The client's auth session; read on every call.
    """

    supports_change_feed = True

    def __init__(self, backend: RemoteBackend, auth: AuthSession) -> None:
        self._backend = backend
        self._auth = auth

    async def get_all(self) -> list[Book]:
        user = await self._auth.get_user()
        if user is None:
            logger.error("No authenticated user")
            return []
        return await self._select(user)

    async def get_by_status(self, status: ReadingStatus | str) -> list[Book]:
        try:
            wanted = ReadingStatus(status)
        except ValueError:
            logger.warning("Unknown reading status: %r", status)
            return []
        user = await self._auth.get_user()
        if user is None:
            return []
        return await self._select(user, wanted)

    async def add(self, book: Book) -> Book:
        """Insert ``book`` for the current principal.

        Returns:
            The stored record, carrying the backend-assigned id and timestamps.

        Raises:
            NotAuthenticatedError: If nobody is signed in.
            BackendError: If the insert failed.
        """
        user = await self._require_user("add a book")
        row = BookRow(user_id=user.id, **book_to_row_values(book))
        try:
            async with self._backend.session() as db:
                db.add(row)
                await db.commit()
                await db.refresh(row)
        except SQLAlchemyError as exc:
            logger.exception("Error adding book")
            raise BackendError("Could not add book") from exc

        stored = row_to_book(row)
        self._publish(ChangeEvent(event_type="INSERT", owner_id=user.id, new=stored))
        return stored

    async def update(self, book_id: str, updates: Mapping[str, Any]) -> Book | None:
        """Apply ``updates`` to one of the principal's books.

        Returns:
            The updated record, or None if the principal owns no such book.

        Raises:
            NotAuthenticatedError: If nobody is signed in.
            BackendError: If the backend rejected the update.
            InvalidUpdateError: If the updates would leave an invalid status or rating.
        """
        user = await self._require_user("update a book")
        try:
            async with self._backend.session() as db:
                row = await self._get_owned_row(db, user, book_id)
                if row is None:
                    return None

                current = row_to_book(row)
                merged = merge_updates(current, updates)
                for column, value in to_remote(merged.to_dict()).items():
                    if column not in SERVER_MANAGED_COLUMNS:
                        setattr(row, column, value)
                row.updated_at = utcnow()

                await db.commit()
                await db.refresh(row)
        except SQLAlchemyError as exc:
            logger.exception("Error updating book %s", book_id)
            raise BackendError(f"Could not update book {book_id}") from exc
        except ValueError as exc:
            logger.warning("Rejected update for book %s: %s", book_id, exc)
            raise InvalidUpdateError(f"Invalid update for book {book_id}") from exc

        stored = row_to_book(row)
        self._publish(ChangeEvent(event_type="UPDATE", owner_id=user.id, new=stored, old=current))
        return stored

    async def delete(self, book_id: str) -> bool:
        """Delete one of the principal's books.

        Returns:
            False if the principal owns no such book.

        Raises:
            NotAuthenticatedError: If nobody is signed in.
            BackendError: If the backend rejected the delete.
        """
        user = await self._require_user("delete a book")
        try:
            async with self._backend.session() as db:
                row = await self._get_owned_row(db, user, book_id)
                if row is None:
                    return False
                removed = row_to_book(row)
                await db.delete(row)
                await db.commit()
        except SQLAlchemyError as exc:
            logger.exception("Error deleting book %s", book_id)
            raise BackendError(f"Could not delete book {book_id}") from exc

        self._publish(ChangeEvent(event_type="DELETE", owner_id=user.id, old=removed))
        return True

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe:
        """Call ``callback`` for every change to the current principal's books.

        Changes made through this storage are delivered too, so callers
        must tolerate seeing their own writes echoed back.

        Raises:
            NotAuthenticatedError: If nobody is signed in.
        """
        user = self._current_user_or_raise("subscribe to changes")
        return self._backend.feed.listen(user.id, callback)

    def changes(self) -> Subscription:
        """Open an async-iterable subscription to the principal's changes.

        Raises:
            NotAuthenticatedError: If nobody is signed in.
        """
        user = self._current_user_or_raise("subscribe to changes")
        return self._backend.feed.open(user.id)

    async def _select(self, user: Principal, status: ReadingStatus | None = None) -> list[Book]:
        stmt = select(BookRow).where(BookRow.user_id == user.id)
        if status is not None:
            stmt = stmt.where(BookRow.status == status.value)
        stmt = stmt.order_by(BookRow.created_at.desc(), BookRow.id.desc())

        try:
            async with self._backend.session() as db:
                result = await db.execute(stmt)
                rows = result.scalars().all()
        except SQLAlchemyError:
            logger.exception("Error fetching books")
            return []
        return [row_to_book(row) for row in rows]

    @staticmethod
    async def _get_owned_row(db: AsyncSession, user: Principal, book_id: str) -> BookRow | None:
        result = await db.execute(
            select(BookRow).where(
                BookRow.id == book_id,
                BookRow.user_id == user.id,
            )
        )
        return result.scalars().first()

    async def _require_user(self, action: str) -> Principal:
        user = await self._auth.get_user()
        if user is None:
            raise NotAuthenticatedError(f"Sign in to {action}")
        return user

    def _current_user_or_raise(self, action: str) -> Principal:
        user = self._auth.current_user
        if user is None:
            raise NotAuthenticatedError(f"Sign in to {action}")
        return user

    def _publish(self, change: ChangeEvent) -> None:
        self._backend.feed.publish(change)
