"""Bookshelf: a personal reading tracker with local and remote storage."""

__version__ = "1.0.0"
