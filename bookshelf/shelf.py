"""Backend-agnostic bookshelf controller.

Holds the state a bookshelf screen needs (loaded books, selected book,
add-book form) and turns user actions into storage calls. Rendering is
left to whatever front end drives it.
"""

import asyncio
import logging
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from bookshelf.models import (
    STATUS_LABELS,
    Book,
    ReadingStatus,
    ValidationResult,
    create_book,
    normalize_keys,
    validate_book,
)
from bookshelf.storage import AuthSession, BookStorage, Principal, StorageError, Subscription

logger = logging.getLogger(__name__)

# Most active shelf first
SHELF_ORDER: tuple[ReadingStatus, ...] = (
    ReadingStatus.CURRENTLY_READING,
    ReadingStatus.WANT_TO_READ,
    ReadingStatus.READ,
)

EMPTY_MESSAGES: dict[ReadingStatus, str] = {
    ReadingStatus.CURRENTLY_READING: "Start reading a book!",
    ReadingStatus.WANT_TO_READ: "Add books you want to read",
    ReadingStatus.READ: "Books you've finished will appear here",
}

# Cover colours for books without a cover image
PLACEHOLDER_COLORS: tuple[str, ...] = (
    "rose",
    "blue",
    "green",
    "purple",
    "amber",
    "teal",
    "indigo",
    "pink",
    "emerald",
    "orange",
)


def placeholder_color(title: str) -> str:
    """Pick a stable placeholder cover colour from the book title."""
    return PLACEHOLDER_COLORS[sum(ord(char) for char in title) % len(PLACEHOLDER_COLORS)]


def toggle_rating(current: int | None, value: int) -> int | None:
    """Star click handler: clicking the current rating clears it."""
    return None if current == value else value


class BookForm(BaseModel):
    """Fields of the add-book form."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = ""
    author: str = ""
    cover_url: str = ""
    status: str = ReadingStatus.WANT_TO_READ.value


class Shelf(BaseModel):
    """One row of the bookshelf."""

    status: ReadingStatus
    title: str
    books: list[Book] = Field(default_factory=list)
    empty_message: str = ""


class Bookshelf:
    """State and actions of the bookshelf screen.

    Args:
        storage: Active storage backend. Only the ``BookStorage`` contract is used.
        auth: Auth session of a remote storage. When given, the shelf reloads
            and restarts live updates on every sign-in and clears on sign-out.
    """

    def __init__(self, storage: BookStorage, auth: AuthSession | None = None) -> None:
        self._storage = storage
        self.books: list[Book] = []
        self.selected_book: Book | None = None
        self.is_add_modal_open = False
        self.form = BookForm()
        self.errors: list[str] = []
        self._subscription: Subscription | None = None
        self._live_task: asyncio.Task | None = None
        self._session_task: asyncio.Task | None = None
        self._stop_watching_auth = auth.on_auth_state_change(self._auth_changed) if auth else None

    @property
    def storage(self) -> BookStorage:
        return self._storage

    @property
    def is_empty(self) -> bool:
        return not self.books

    async def load(self) -> list[Book]:
        self.books = await self._storage.get_all()
        if self.selected_book is not None:
            self.selected_book = self._find(self.selected_book.id)
        return self.books

    def shelves(self) -> list[Shelf]:
        return [
            Shelf(
                status=status,
                title=STATUS_LABELS[status],
                books=[book for book in self.books if book.status is status],
                empty_message=EMPTY_MESSAGES[status],
            )
            for status in SHELF_ORDER
        ]

    def stats(self) -> dict[ReadingStatus, int]:
        counts = {status: 0 for status in ReadingStatus}
        for book in self.books:
            counts[book.status] += 1
        return counts

    # Add-book form

    def open_add_modal(self) -> None:
        self.is_add_modal_open = True

    def close_add_modal(self) -> None:
        self.is_add_modal_open = False
        self.form = BookForm()
        self.errors = []

    def set_field(self, name: str, value: Any) -> None:
        """Set one form field; any shown errors are cleared."""
        field = normalize_keys({name: value})
        if not field or not set(field) <= set(BookForm.model_fields):
            raise KeyError(f"Unknown form field: {name}")
        self.form = self.form.model_copy(update=field)
        self.errors = []

    async def submit_add(self) -> ValidationResult:
        """Validate the form and add the book. The form stays open on errors."""
        data = self.form.model_dump(by_alias=True)
        result = validate_book(data)
        if not result.is_valid:
            self.errors = result.errors
            return result

        try:
            stored = await self._storage.add(create_book(data))
        except StorageError as exc:
            logger.exception("Adding book failed")
            return self._fail(str(exc))
        if stored is None:
            return self._fail("Could not save the book")

        await self.load()
        self.close_add_modal()
        return result

    # Book details

    def select_book(self, book: Book) -> None:
        self.selected_book = book

    def close_book(self) -> None:
        self.selected_book = None

    async def save_selected(
        self, rating: int | None, review: str, status: ReadingStatus | str
    ) -> ValidationResult:
        """Save the details view of the selected book and close it."""
        if self.selected_book is None:
            return self._fail("No book selected")
        result = await self.update_book(
            self.selected_book.id,
            {"rating": rating, "review": review, "status": status},
        )
        if result.is_valid:
            self.close_book()
        return result

    async def update_book(self, book_id: str, updates: Mapping[str, Any]) -> ValidationResult:
        """Validate the book as it would look after ``updates``, then save it."""
        current = self._find(book_id)
        if current is None:
            return self._fail("Book not found")

        result = validate_book({**current.model_dump(), **normalize_keys(updates)})
        if not result.is_valid:
            self.errors = result.errors
            return result

        try:
            updated = await self._storage.update(book_id, updates)
        except StorageError as exc:
            logger.exception("Updating book %s failed", book_id)
            return self._fail(str(exc))
        if updated is None:
            await self.load()
            return self._fail("Book not found")

        await self.load()
        return result

    async def delete_book(self, book_id: str) -> bool:
        try:
            deleted = await self._storage.delete(book_id)
        except StorageError as exc:
            logger.exception("Deleting book %s failed", book_id)
            self.errors = [str(exc)]
            return False
        if self.selected_book is not None and self.selected_book.id == book_id:
            self.close_book()
        await self.load()
        return deleted

    # Export / import

    def export_books(self) -> str | None:
        """JSON text of the whole collection, or None if the storage can't export."""
        if not self._storage.supports_bulk_transfer:
            return None
        return self._storage.export_books()

    async def import_books(self, text: str) -> ValidationResult:
        """Replace the collection with an exported file and reload."""
        if not self._storage.supports_bulk_transfer:
            return self._fail("Import is not available for this storage")
        if not self._storage.import_books(text):
            return self._fail("Not a valid bookshelf export")
        self.close_book()
        await self.load()
        return ValidationResult(is_valid=True)

    # Live updates

    async def start_live_updates(self) -> bool:
        """Reload whenever the backend reports a change.

        Returns:
            False if the storage has no change feed or nobody is signed in.
        """
        if not self._storage.supports_change_feed or self._live_task is not None:
            return False
        try:
            self._subscription = self._storage.changes()
        except StorageError as exc:
            logger.warning("Live updates unavailable: %s", exc)
            return False
        self._live_task = asyncio.create_task(self._follow(self._subscription))
        return True

    async def stop_live_updates(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
        if self._live_task is not None:
            await self._live_task
        self._subscription = None
        self._live_task = None

    async def wait_for_session(self) -> None:
        """Wait until the reaction to the last sign-in or sign-out has finished."""
        if self._session_task is not None:
            await self._session_task

    async def close(self) -> None:
        """Stop live updates and stop watching the auth session."""
        if self._stop_watching_auth is not None:
            self._stop_watching_auth()
            self._stop_watching_auth = None
        await self.wait_for_session()
        await self.stop_live_updates()

    async def _follow(self, subscription: Subscription) -> None:
        async for change in subscription:
            logger.debug("%s on book %s, reloading", change.event_type, change.book_id)
            await self.load()

    def _auth_changed(self, event: str, principal: Principal | None) -> None:
        # Listeners are plain callables; the reload runs as a task on the caller's loop
        previous = self._session_task
        self._session_task = asyncio.get_running_loop().create_task(self._session_changed(event, previous))

    async def _session_changed(self, event: str, previous: asyncio.Task | None) -> None:
        if previous is not None:
            await previous
        await self.stop_live_updates()
        self.close_book()
        self.close_add_modal()
        if event == "SIGNED_OUT":
            self.books = []
            return
        await self.load()
        await self.start_live_updates()

    def _find(self, book_id: str) -> Book | None:
        return next((book for book in self.books if book.id == book_id), None)

    def _fail(self, message: str) -> ValidationResult:
        self.errors = [message]
        return ValidationResult(is_valid=False, errors=[message])
