"""Entry point for the Bookshelf application."""

import asyncio
import logging
from typing import Optional

import typer

from bookshelf.config import configure_logging, load_config
from bookshelf.sample_data import populate_sample_data
from bookshelf.shelf import Bookshelf
from bookshelf.storage import AuthSession, RemoteBackend, create_storage

logger = logging.getLogger("bookshelf")

app = typer.Typer(help="Track your reading.")


async def run(config_path: str, sample: bool, email: str | None) -> None:
    """Open the configured backend and log what is on each shelf."""
    config = load_config(config_path)
    configure_logging(config)

    backend = None
    auth = AuthSession()
    if config.storage.backend == "remote":
        backend = RemoteBackend.from_config(config)
        await backend.create_schema()
        if email:
            auth.sign_in(await backend.register_user(email))

    try:
        shelf = Bookshelf(create_storage(config, auth=auth, backend=backend))
        await shelf.load()

        if sample and shelf.is_empty:
            await populate_sample_data(shelf.storage)
            await shelf.load()

        for row in shelf.shelves():
            logger.info("%s (%d)", row.title, len(row.books))
            if not row.books:
                logger.info("  %s", row.empty_message)
            for book in row.books:
                stars = "*" * (book.rating or 0)
                logger.info("  %s by %s %s", book.title, book.author, stars)
    finally:
        if backend is not None:
            await backend.dispose()


@app.command()
def main(
    config: str = typer.Option("config.yaml", "--config", "-c", help="Path to the YAML config"),
    sample: bool = typer.Option(False, "--sample", help="Fill an empty shelf with sample books"),
    email: Optional[str] = typer.Option(
        None, "--email", help="Principal to register and sign in as (remote backend)"
    ),
) -> None:
    """Log what is on each shelf of the configured backend."""
    asyncio.run(run(config, sample, email))


if __name__ == "__main__":
    app()
