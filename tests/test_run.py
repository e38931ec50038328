"""Tests for the command-line entry point."""

import asyncio
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from bookshelf.storage import LocalBookStorage, SQLiteKeyValueStore
from run import app

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.delenv("BOOKSHELF_BACKEND", raising=False)
    monkeypatch.delenv("BOOKSHELF_DATABASE_URL", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump({"storage": {"backend": "local", "sqlite_path": str(tmp_path / "shelf.db")}}),
        encoding="utf-8",
    )
    return path


def _stored_titles(tmp_path: Path) -> list[str]:
    storage = LocalBookStorage(SQLiteKeyValueStore(tmp_path / "shelf.db"))
    return [book.title for book in asyncio.run(storage.get_all())]


class TestCli:
    def test_empty_shelf(self, config_file: Path, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--config", str(config_file)])
        assert result.exit_code == 0
        assert _stored_titles(tmp_path) == []

    def test_sample_fills_empty_shelf_once(self, config_file: Path, tmp_path: Path) -> None:
        assert runner.invoke(app, ["--config", str(config_file), "--sample"]).exit_code == 0
        assert runner.invoke(app, ["--config", str(config_file), "--sample"]).exit_code == 0

        titles = _stored_titles(tmp_path)
        assert len(titles) == 10
        assert titles[0] == "The Midnight Library"

    def test_remote_backend_with_email(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BOOKSHELF_BACKEND", "remote")
        monkeypatch.setenv("BOOKSHELF_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'remote.db'}")

        result = runner.invoke(
            app, ["--config", str(tmp_path / "missing.yaml"), "--email", "ana@example.com", "--sample"]
        )

        assert result.exit_code == 0
        assert (tmp_path / "remote.db").exists()

    def test_unknown_option(self) -> None:
        result = runner.invoke(app, ["--shelf", "read"])
        assert result.exit_code != 0
