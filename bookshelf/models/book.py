"""Book data model, defaults and validation rules."""

import time
from enum import Enum
from typing import Any, Mapping
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ReadingStatus(str, Enum):
    """Shelf a book sits on."""

    WANT_TO_READ = "want_to_read"
    CURRENTLY_READING = "currently_reading"
    READ = "read"


STATUS_VALUES: tuple[str, ...] = tuple(status.value for status in ReadingStatus)

STATUS_LABELS: dict[ReadingStatus, str] = {
    ReadingStatus.WANT_TO_READ: "Want to Read",
    ReadingStatus.CURRENTLY_READING: "Currently Reading",
    ReadingStatus.READ: "Read",
}

# Fields that are fixed once a record exists
IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


def now_ms() -> int:
    """Return the current instant as epoch milliseconds."""
    return int(time.time() * 1000)


def generate_id() -> str:
    """Generate a new record identifier (UUID4 string)."""
    return str(uuid4())


class Book(BaseModel):
    """A tracked book and its reading metadata.

    Attributes are snake_case in Python; the application representation
    (local persistence, export files) uses the camelCase aliases, e.g.
    ``coverUrl`` and ``finishedAt``. Instants are epoch milliseconds.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=generate_id)
    title: str = ""
    author: str = ""
    cover_url: str = ""
    status: ReadingStatus = ReadingStatus.WANT_TO_READ
    rating: int | None = Field(default=None, ge=1, le=5)
    review: str = ""
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)
    finished_at: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase representation with plain JSON values."""
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Book":
        """Parse a record from either camelCase or snake_case keys."""
        return cls.model_validate(normalize_keys(data))


class ValidationResult(BaseModel):
    """Outcome of validating user-supplied book data."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)


# camelCase alias -> attribute name, e.g. "coverUrl" -> "cover_url"
_ALIAS_TO_FIELD: dict[str, str] = {to_camel(name): name for name in Book.model_fields}


def normalize_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    """Map camelCase keys onto Book attribute names.

    Snake_case keys pass through unchanged. Keys that are not Book fields
    are dropped.
    """
    normalized: dict[str, Any] = {}
    for key, value in data.items():
        if key in Book.model_fields:
            normalized[key] = value
        elif key in _ALIAS_TO_FIELD:
            normalized[_ALIAS_TO_FIELD[key]] = value
    return normalized


def _coerce_status(value: Any) -> ReadingStatus:
    try:
        return ReadingStatus(value)
    except ValueError:
        return ReadingStatus.WANT_TO_READ


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def create_book(partial: Mapping[str, Any] | None = None, **fields: Any) -> Book:
    """Create a new book with defaults filled in for omitted fields.

    Never validates and never fails: text fields are converted with
    ``str``, and unusable status, rating or instant values fall back to
    their defaults. Run ``validate_book`` on user input first.

    Args:
        partial: Book data using camelCase or snake_case keys.
        **fields: Extra fields, applied on top of ``partial``.

    Returns:
        A complete Book.
    """
    data = normalize_keys({**(partial or {}), **fields})
    now = now_ms()

    rating = data.get("rating")
    if not _is_int(rating) or not 1 <= rating <= 5:
        rating = None

    created_at = data.get("created_at")
    updated_at = data.get("updated_at")
    finished_at = data.get("finished_at")

    return Book(
        id=_text(data.get("id")) or generate_id(),
        title=_text(data.get("title")),
        author=_text(data.get("author")),
        cover_url=_text(data.get("cover_url")),
        status=_coerce_status(data.get("status") or ReadingStatus.WANT_TO_READ),
        rating=rating,
        review=_text(data.get("review")),
        created_at=created_at if _is_int(created_at) else now,
        updated_at=updated_at if _is_int(updated_at) else now,
        finished_at=finished_at if _is_int(finished_at) else None,
    )


def validate_book(data: Mapping[str, Any] | Book) -> ValidationResult:
    """Validate user-supplied book data.

    All rules are checked independently, so every problem is reported at
    once. Unknown keys are ignored.

    Args:
        data: Book fields (camelCase or snake_case keys) or a Book.

    Returns:
        ValidationResult with the ordered list of error messages.
    """
    if isinstance(data, Book):
        fields = data.model_dump()
    else:
        fields = normalize_keys(data)
    errors: list[str] = []

    title = fields.get("title")
    if not isinstance(title, str) or not title.strip():
        errors.append("Title is required")

    author = fields.get("author")
    if not isinstance(author, str) or not author.strip():
        errors.append("Author is required")

    rating = fields.get("rating")
    if rating is not None:
        if not _is_int(rating) or not 1 <= rating <= 5:
            errors.append("Rating must be between 1 and 5")

    if fields.get("status") is not None:
        if fields["status"] not in STATUS_VALUES:
            errors.append("Invalid reading status")

    return ValidationResult(is_valid=not errors, errors=errors)


def apply_status_transition(
    current: Book, updates: Mapping[str, Any], now: int | None = None
) -> dict[str, Any]:
    """Apply the finishedAt side effect of a status change.

    Moving into ``read`` from any other status stamps ``finished_at``.
    Re-saving a book that is already read, or moving it off the read
    shelf, leaves ``finished_at`` as it was.

    Args:
        current: The stored record before the update.
        updates: Requested changes (camelCase or snake_case keys).
        now: Instant to stamp, defaults to the current time.

    Returns:
        The normalized updates, with ``finished_at`` added when entering read.
    """
    changes = normalize_keys(updates)
    new_status = changes.get("status")
    if new_status is None:
        return changes

    if ReadingStatus(new_status) is ReadingStatus.READ and current.status is not ReadingStatus.READ:
        changes["finished_at"] = now if now is not None else now_ms()
    return changes


def merge_updates(current: Book, updates: Mapping[str, Any], now: int | None = None) -> Book:
    """Return ``current`` with ``updates`` applied.

    ``id`` and ``created_at`` are never changed; ``updated_at`` is refreshed.

    Raises:
        ValueError: If the merged record is not a valid Book shape.
    """
    stamp = now if now is not None else now_ms()
    changes = apply_status_transition(current, updates, now=stamp)
    for name in IMMUTABLE_FIELDS:
        changes.pop(name, None)
    changes["updated_at"] = stamp
    return Book.model_validate({**current.model_dump(), **changes})
