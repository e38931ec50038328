"""Translation between application records and remote rows.

Application records use camelCase keys and epoch-millisecond instants;
remote rows use snake_case columns and timezone-aware datetimes. Both
directions translate only the keys they are given, so partial updates stay
partial, and ``None`` always passes through unchanged.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Mapping

from bookshelf.models import Book

# application key -> remote column
FIELD_MAP: dict[str, str] = {
    "id": "id",
    "title": "title",
    "author": "author",
    "coverUrl": "cover_url",
    "status": "status",
    "rating": "rating",
    "review": "review",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "finishedAt": "finished_at",
}

REVERSE_FIELD_MAP: dict[str, str] = {column: key for key, column in FIELD_MAP.items()}

INSTANT_FIELDS = frozenset({"createdAt", "updatedAt", "finishedAt"})

# Columns the backend fills in itself on insert
SERVER_MANAGED_COLUMNS = frozenset({"id", "created_at", "updated_at"})

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def ms_to_datetime(value: int | None) -> datetime | None:
    if value is None:
        return None
    return EPOCH + timedelta(milliseconds=value)


def datetime_to_ms(value: datetime | None) -> int | None:
    if value is None:
        return None
    if value.tzinfo is None:
        # SQLite hands back naive values; they are stored as UTC
        value = value.replace(tzinfo=timezone.utc)
    return (value - EPOCH) // timedelta(milliseconds=1)


def to_remote(data: Mapping[str, Any]) -> dict[str, Any]:
    """Translate application keys and values to remote columns.

    Args:
        data: camelCase record or partial record.

    Returns:
        Dict keyed by column name. Unknown keys are dropped.
    """
    row: dict[str, Any] = {}
    for key, value in data.items():
        column = FIELD_MAP.get(key)
        if column is None:
            continue
        if key in INSTANT_FIELDS:
            value = ms_to_datetime(value)
        elif isinstance(value, Enum):
            value = value.value
        row[column] = value
    return row


def from_remote(row: Mapping[str, Any]) -> dict[str, Any]:
    """Translate remote columns back to application keys and values.

    Args:
        row: Column/value mapping, complete or partial.

    Returns:
        camelCase dict. Columns with no application field are dropped.
    """
    data: dict[str, Any] = {}
    for column, value in row.items():
        key = REVERSE_FIELD_MAP.get(column)
        if key is None:
            continue
        if key in INSTANT_FIELDS:
            value = datetime_to_ms(value)
        data[key] = value
    return data


def book_to_row_values(book: Book) -> dict[str, Any]:
    """Column values for inserting ``book``, minus server-managed columns."""
    row = to_remote(book.to_dict())
    for column in SERVER_MANAGED_COLUMNS:
        row.pop(column, None)
    return row


def row_to_book(row: Any) -> Book:
    """Build a Book from a ``BookRow`` (or any object with the columns as attributes)."""
    return Book.from_dict(from_remote({column: getattr(row, column) for column in REVERSE_FIELD_MAP}))
