"""Storage error types.

Validation problems of user input are not exceptions (see ``validate_book``);
an update that would store an invalid record raises ``InvalidUpdateError``. A
missing record is signalled by ``None``/``False`` return values.
"""


class StorageError(Exception):
    """Base class for storage failures."""


class NotAuthenticatedError(StorageError):
    """A remote write was attempted without a signed-in principal."""


class BackendError(StorageError):
    """The remote backend failed or could not be reached."""


class UnsupportedOperationError(StorageError):
    """The active backend does not provide this operation."""


class InvalidUpdateError(StorageError):
    """An update would leave the record with an invalid status or rating."""
