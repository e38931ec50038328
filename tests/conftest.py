"""Shared fixtures."""

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from pathlib import Path

import pytest

from bookshelf.storage import LocalBookStorage, MemoryKeyValueStore, RemoteBackend


@pytest.fixture
def local_storage() -> LocalBookStorage:
    return LocalBookStorage(MemoryKeyValueStore())


@pytest.fixture
def open_backend(tmp_path: Path) -> Callable[..., AbstractAsyncContextManager[RemoteBackend]]:
    """Factory for a fresh remote backend on a SQLite file in tmp_path.

    Engines are bound to the event loop that first uses them, so each test
    opens the backend inside its own ``asyncio.run`` call.
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'remote.db'}"

    @asynccontextmanager
    async def _open(create_schema: bool = True) -> AsyncIterator[RemoteBackend]:
        backend = RemoteBackend(url)
        if create_schema:
            await backend.create_schema()
        try:
            yield backend
        finally:
            await backend.dispose()

    return _open
