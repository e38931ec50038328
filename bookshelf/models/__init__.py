"""Data models for the Bookshelf application."""

from bookshelf.models.book import (
    STATUS_LABELS,
    STATUS_VALUES,
    Book,
    ReadingStatus,
    ValidationResult,
    apply_status_transition,
    create_book,
    generate_id,
    merge_updates,
    normalize_keys,
    now_ms,
    validate_book,
)
from bookshelf.models.change import ChangeEvent

__all__ = [
    "STATUS_LABELS",
    "STATUS_VALUES",
    "Book",
    "ChangeEvent",
    "ReadingStatus",
    "ValidationResult",
    "apply_status_transition",
    "create_book",
    "generate_id",
    "merge_updates",
    "normalize_keys",
    "now_ms",
    "validate_book",
]
