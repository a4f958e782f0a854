"""Bookshelf: a personal book-collection API."""

__version__ = "0.1.0"
