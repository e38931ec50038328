"""Change notification model for the remote change feed."""

from typing import Literal

from pydantic import BaseModel, Field

from bookshelf.models.book import Book, now_ms


class ChangeEvent(BaseModel):
    """A single insert, update or delete on the books table.

    ``new`` holds the row after the change (INSERT, UPDATE), ``old`` the
    row before it (UPDATE, DELETE).
    """

    event_type: Literal["INSERT", "UPDATE", "DELETE"]
    table: str = "books"
    owner_id: str
    new: Book | None = None
    old: Book | None = None
    committed_at: int = Field(default_factory=now_ms)

    @property
    def book_id(self) -> str:
        record = self.new or self.old
        return record.id if record else ""
