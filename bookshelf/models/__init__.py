"""Database models."""

from bookshelf.models.book import Book
from bookshelf.models.genre import SYSTEM_GENRES, BookGenre, Genre
from bookshelf.models.import_job import ImportJob, ImportStatus

__all__ = ["SYSTEM_GENRES", "Book", "BookGenre", "Genre", "ImportJob", "ImportStatus"]
