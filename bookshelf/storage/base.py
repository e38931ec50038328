"""The storage contract shared by the local and remote backends."""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Mapping

from bookshelf.models import Book, ChangeEvent, ReadingStatus
from bookshelf.storage.errors import UnsupportedOperationError

if TYPE_CHECKING:
    from bookshelf.storage.feed import Subscription

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[ChangeEvent], None]
Unsubscribe = Callable[[], None]


class BookStorage(ABC):
    """Operations every storage backend provides.

    All operations are coroutines so callers can be written once and run
    against either backend. ``updates`` mappings accept camelCase or
    snake_case keys.
    """

    supports_change_feed: bool = False
    supports_bulk_transfer: bool = False

    @abstractmethod
    async def get_all(self) -> list[Book]:
        """Return every record visible to the caller; empty on read failure."""

    @abstractmethod
    async def add(self, book: Book) -> Book | None:
        """Store a fully formed book and return the stored record."""

    @abstractmethod
    async def update(self, book_id: str, updates: Mapping[str, Any]) -> Book | None:
        """Apply a partial update; ``None`` when the record does not exist.

        Raises:
            InvalidUpdateError: If the result would have an invalid status or rating.
        """

    @abstractmethod
    async def delete(self, book_id: str) -> bool:
        """Delete a record; ``False`` when it does not exist."""

    async def get_by_status(self, status: ReadingStatus | str) -> list[Book]:
        """Return the records on one shelf, in ``get_all`` order."""
        try:
            wanted = ReadingStatus(status)
        except ValueError:
            logger.warning("Unknown reading status: %r", status)
            return []
        return [book for book in await self.get_all() if book.status is wanted]

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe:
        """Call ``callback`` for every change to the collection.

        Returns:
            A function that stops further delivery.
        """
        raise UnsupportedOperationError(f"{type(self).__name__} has no change feed")

    def changes(self) -> "Subscription":
        """Open an async-iterable stream of changes to the collection."""
        raise UnsupportedOperationError(f"{type(self).__name__} has no change feed")

    def export_books(self) -> str:
        raise UnsupportedOperationError(f"{type(self).__name__} does not support export")

    def import_books(self, text: str) -> bool:
        raise UnsupportedOperationError(f"{type(self).__name__} does not support import")

    def clear(self) -> bool:
        raise UnsupportedOperationError(f"{type(self).__name__} does not support clearing")
