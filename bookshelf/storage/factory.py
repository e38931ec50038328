"""Pick the storage backend named in the config."""

from bookshelf.config import AppConfig
from bookshelf.storage.auth import AuthSession
from bookshelf.storage.base import BookStorage
from bookshelf.storage.kv_store import KeyValueStore, SQLiteKeyValueStore
from bookshelf.storage.local import LocalBookStorage
from bookshelf.storage.remote import RemoteBackend, RemoteBookStorage


def create_storage(
    config: AppConfig,
    auth: AuthSession | None = None,
    backend: RemoteBackend | None = None,
    store: KeyValueStore | None = None,
) -> BookStorage:
    """Build the storage backend selected by ``config.storage.backend``.

    Args:
        config: Application config.
        auth: Auth session for the remote backend. A signed-out session is
            created when omitted.
        backend: Existing remote backend to share; built from config otherwise.
        store: Key/value store for the local backend; a SQLite file at
            ``config.storage.sqlite_path`` otherwise.

    Returns:
        A LocalBookStorage or RemoteBookStorage.
    """
    if config.storage.backend == "remote":
        return RemoteBookStorage(
            backend or RemoteBackend.from_config(config),
            auth or AuthSession(),
        )

    return LocalBookStorage(
        store or SQLiteKeyValueStore(config.storage.sqlite_path),
        key=config.storage.storage_key,
    )
