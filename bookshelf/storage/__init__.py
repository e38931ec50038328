"""Storage backends: local key/value slot and remote SQL database."""

from bookshelf.storage.auth import AuthSession, Principal
from bookshelf.storage.base import BookStorage
from bookshelf.storage.errors import (
    BackendError,
    InvalidUpdateError,
    NotAuthenticatedError,
    StorageError,
    UnsupportedOperationError,
)
from bookshelf.storage.factory import create_storage
from bookshelf.storage.feed import ChangeFeed, Subscription
from bookshelf.storage.kv_store import MemoryKeyValueStore, QuotaExceededError, SQLiteKeyValueStore
from bookshelf.storage.local import LocalBookStorage
from bookshelf.storage.remote import RemoteBackend, RemoteBookStorage

__all__ = [
    "AuthSession",
    "BackendError",
    "BookStorage",
    "ChangeFeed",
    "InvalidUpdateError",
    "LocalBookStorage",
    "MemoryKeyValueStore",
    "NotAuthenticatedError",
    "Principal",
    "QuotaExceededError",
    "RemoteBackend",
    "RemoteBookStorage",
    "SQLiteKeyValueStore",
    "StorageError",
    "Subscription",
    "UnsupportedOperationError",
    "create_storage",
]
