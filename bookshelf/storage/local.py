"""Single-device storage: the whole collection as one JSON value.

Every operation reads the collection, changes it and writes it back as a
unit. Nothing here awaits, so each call is atomic with respect to other
tasks on the same event loop. Failures of the underlying store are logged
and turned into fallback values; they never reach the caller.
"""

import json
import logging
import sqlite3
from typing import Any, Mapping

from pydantic import ValidationError

from bookshelf.models import Book, merge_updates
from bookshelf.storage.base import BookStorage
from bookshelf.storage.errors import InvalidUpdateError
from bookshelf.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "bookshelf_books"

# Keys an imported object must carry to count as a book record
REQUIRED_RECORD_KEYS = ("id", "title", "author")

_STORE_ERRORS = (OSError, sqlite3.Error)


class LocalBookStorage(BookStorage):
    """Storage backend over a client-local key/value slot.

    Records keep insertion order. There is no notion of users.

    Args:
        store: The key/value store holding the collection.
        key: Name of the slot the collection is kept under.
    """

    supports_bulk_transfer = True

    def __init__(self, store: KeyValueStore, key: str = DEFAULT_STORAGE_KEY) -> None:
        self._store = store
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    async def get_all(self) -> list[Book]:
        return self._load()

    async def add(self, book: Book) -> Book | None:
        books = self._load()
        if any(existing.id == book.id for existing in books):
            logger.warning("Book %s already exists; not adding it again", book.id)
            return None
        books.append(book)
        return book if self._save(books) else None

    async def update(self, book_id: str, updates: Mapping[str, Any]) -> Book | None:
        """Apply ``updates`` to one book.

        Raises:
            InvalidUpdateError: If the result would not be a valid book.
        """
        books = self._load()
        for index, book in enumerate(books):
            if book.id == book_id:
                break
        else:
            logger.info("Update skipped, book %s not found", book_id)
            return None

        try:
            updated = merge_updates(book, updates)
        except ValueError as exc:
            logger.warning("Rejected update for book %s: %s", book_id, exc)
            raise InvalidUpdateError(f"Invalid update for book {book_id}") from exc

        books[index] = updated
        return updated if self._save(books) else None

    async def delete(self, book_id: str) -> bool:
        books = self._load()
        remaining = [book for book in books if book.id != book_id]
        if len(remaining) == len(books):
            return False
        return self._save(remaining)

    def clear(self) -> bool:
        """Remove the whole collection."""
        try:
            self._store.remove_item(self._key)
        except _STORE_ERRORS:
            logger.exception("Failed to clear local storage")
            return False
        return True

    def export_books(self) -> str:
        """Serialize the collection to pretty-printed JSON."""
        return json.dumps([book.to_dict() for book in self._load()], indent=2)

    def import_books(self, text: str) -> bool:
        """Replace the collection with the records in ``text``.

        Nothing is changed unless ``text`` is a JSON array of book objects.

        Args:
            text: JSON produced by ``export_books`` or compatible.

        Returns:
            True if the collection was replaced.
        """
        try:
            payload = json.loads(text)
        except (TypeError, ValueError):
            logger.error("Import failed: not valid JSON")
            return False

        if not isinstance(payload, list):
            logger.error("Import failed: expected a list of books, got %s", type(payload).__name__)
            return False

        books: list[Book] = []
        for position, item in enumerate(payload):
            if not isinstance(item, dict) or not all(key in item for key in REQUIRED_RECORD_KEYS):
                logger.error("Import failed: entry %d is not a book record", position)
                return False
            try:
                books.append(Book.from_dict(item))
            except ValidationError:
                logger.exception("Import failed: entry %d has invalid fields", position)
                return False

        return self._save(books)

    def _load(self) -> list[Book]:
        try:
            raw = self._store.get_item(self._key)
        except _STORE_ERRORS:
            logger.exception("Failed to read books from local storage")
            return []
        if not raw:
            return []

        try:
            payload = json.loads(raw)
        except ValueError:
            logger.error("Stored book collection is not valid JSON; ignoring it")
            return []
        if not isinstance(payload, list):
            logger.error("Stored book collection is not a list; ignoring it")
            return []

        books = []
        for item in payload:
            if not isinstance(item, dict):
                logger.warning("Skipping malformed stored book: %r", item)
                continue
            try:
                books.append(Book.from_dict(item))
            except ValidationError:
                logger.warning("Skipping malformed stored book: %r", item)
        return books

    def _save(self, books: list[Book]) -> bool:
        try:
            self._store.set_item(self._key, json.dumps([book.to_dict() for book in books]))
        except _STORE_ERRORS:
            logger.exception("Failed to write books to local storage")
            return False
        return True
