"""Copying a collection from one backend to another.

Used when a reader moves from the single-device backend to the remote
one: every local book is added to the remote shelf unless a book with the
same title and author is already there.
"""

import logging

from pydantic import BaseModel, Field

from bookshelf.models import Book
from bookshelf.storage import BackendError, BookStorage

logger = logging.getLogger(__name__)


class SyncReport(BaseModel):
    """Counts from one ``copy_collection`` run."""

    copied: int = 0
    skipped: int = 0
    failed: int = 0
    copied_ids: dict[str, str] = Field(default_factory=dict)  # source id -> target id


def _identity(book: Book) -> tuple[str, str]:
    return book.title.strip().casefold(), book.author.strip().casefold()


async def copy_collection(source: BookStorage, target: BookStorage) -> SyncReport:
    """Add every book in ``source`` that ``target`` does not have yet.

    Books are copied oldest first so a newest-first target lists them in
    the same order the source would. Each copy keeps status, rating,
    review and finish date; the target assigns its own ids and timestamps
    where it manages them.

    Args:
        source: Backend to read from.
        target: Backend to add to.

    Returns:
        SyncReport with copied, skipped and failed counts.

    Raises:
        NotAuthenticatedError: If the target requires a principal and none is signed in.
    """
    report = SyncReport()
    existing = {_identity(book) for book in await target.get_all()}
    pending = sorted(await source.get_all(), key=lambda book: book.created_at)

    for book in pending:
        identity = _identity(book)
        if identity in existing:
            report.skipped += 1
            continue

        try:
            stored = await target.add(book)
        except BackendError:
            logger.exception("Failed to copy book %s", book.id)
            report.failed += 1
            continue

        if stored is None:
            report.failed += 1
            continue

        existing.add(identity)
        report.copied += 1
        report.copied_ids[book.id] = stored.id

    logger.info(
        "Copied %d books (%d already present, %d failed)",
        report.copied,
        report.skipped,
        report.failed,
    )
    return report
