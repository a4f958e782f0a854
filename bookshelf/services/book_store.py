"""Book store: owner-scoped create/read/update/delete of book records.

Every statement that resolves a book carries the owner predicate, so a book
belonging to another user looks exactly like a missing one.
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone

from fastapi import Depends
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from bookshelf.core.database import get_db
from bookshelf.core.errors import NotFoundError, ValidationError
from bookshelf.models.book import (
    AUTHOR_MAX_LENGTH,
    EDITION_MAX_LENGTH,
    ISBN_MAX_LENGTH,
    MAX_RATING,
    MIN_RATING,
    TITLE_MAX_LENGTH,
    Book,
)
from bookshelf.models.genre import BookGenre
from bookshelf.services.genre_registry import GenreRegistry

logger = logging.getLogger(__name__)


@dataclass
class BookFields:
    """Client-editable fields of a book."""

    title: str
    author: str
    published_date: date
    rating: int
    edition: str | None = None
    isbn: str | None = None
    genres: list[str] = field(default_factory=list)

    def normalized(self) -> "BookFields":
        """Copy with strings trimmed and blank optional fields set to None."""
        return replace(
            self,
            title=self.title.strip(),
            author=self.author.strip(),
            edition=(self.edition or "").strip() or None,
            isbn=(self.isbn or "").strip() or None,
            genres=[name.strip() for name in self.genres if name.strip()],
        )


def validate_book_fields(fields: BookFields, today: date | None = None) -> None:
    """Raise ValidationError describing the first invalid field."""
    if today is None:
        today = datetime.now(tz=timezone.utc).date()

    if not fields.title:
        raise ValidationError("Title is required")
    if len(fields.title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title cannot exceed {TITLE_MAX_LENGTH} characters")
    if not fields.author:
        raise ValidationError("Author is required")
    if len(fields.author) > AUTHOR_MAX_LENGTH:
        raise ValidationError(f"Author cannot exceed {AUTHOR_MAX_LENGTH} characters")
    if not MIN_RATING <= fields.rating <= MAX_RATING:
        raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
    if fields.published_date > today:
        raise ValidationError("Published date cannot be in the future")
    if fields.edition and len(fields.edition) > EDITION_MAX_LENGTH:
        raise ValidationError(f"Edition cannot exceed {EDITION_MAX_LENGTH} characters")
    if fields.isbn and len(fields.isbn) > ISBN_MAX_LENGTH:
        raise ValidationError(f"ISBN cannot exceed {ISBN_MAX_LENGTH} characters")


def duplicate_key(title: str, author: str) -> tuple[str, str]:
    """Natural key used to spot an imported book that is already owned."""
    return title.strip().lower(), author.strip().lower()


class BookStore:
    """Owner-scoped persistence for books and their genre links."""

    def __init__(self, db: AsyncSession, genres: GenreRegistry | None = None) -> None:
        self.db = db
        self.genres = genres or GenreRegistry(db)

    async def find_owned(self, user_id: uuid.UUID, book_id: uuid.UUID) -> Book | None:
        """Fetch a book by id only if it belongs to the user."""
        query = select(Book).where(Book.id == book_id, Book.user_id == user_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def create(self, user_id: uuid.UUID, fields: BookFields) -> Book:
        """Create a book owned by the user."""
        fields = fields.normalized()
        validate_book_fields(fields)

        genres = await self.genres.ensure_genres_exist(fields.genres)

        now = datetime.now(tz=timezone.utc)
        book = Book(
            id=uuid.uuid4(),
            user_id=user_id,
            title=fields.title,
            author=fields.author,
            published_date=fields.published_date,
            rating=fields.rating,
            edition=fields.edition,
            isbn=fields.isbn,
            created_at=now,
            updated_at=now,
            genre_links=[BookGenre(genre_name=genre.name) for genre in genres],
        )
        self.db.add(book)
        await self.db.flush()

        logger.debug(f"Created book {book.id} for user {user_id}")
        return book

    async def get_by_id(self, user_id: uuid.UUID, book_id: uuid.UUID) -> Book:
        """Get one of the user's books, or raise NotFoundError."""
        book = await self.find_owned(user_id, book_id)
        if book is None:
            raise NotFoundError("Book not found")
        return book

    async def update(self, user_id: uuid.UUID, book_id: uuid.UUID, fields: BookFields) -> Book:
        """Replace the editable fields and the genre set of a book."""
        book = await self.get_by_id(user_id, book_id)

        fields = fields.normalized()
        validate_book_fields(fields)

        genres = await self.genres.ensure_genres_exist(fields.genres)

        book.title = fields.title
        book.author = fields.author
        book.published_date = fields.published_date
        book.rating = fields.rating
        book.edition = fields.edition
        book.isbn = fields.isbn
        book.updated_at = datetime.now(tz=timezone.utc)

        # Drop the old links before adding the new set
        book.genre_links.clear()
        await self.db.flush()
        book.genre_links.extend(BookGenre(genre_name=genre.name) for genre in genres)
        await self.db.flush()

        logger.debug(f"Updated book {book.id} for user {user_id}")
        return book

    async def delete(self, user_id: uuid.UUID, book_id: uuid.UUID) -> bool:
        """Delete one of the user's books. Returns whether a row was removed."""
        owned = select(Book.id).where(Book.id == book_id, Book.user_id == user_id)
        await self.db.execute(delete(BookGenre).where(BookGenre.book_id.in_(owned)))
        result = await self.db.execute(
            delete(Book).where(Book.id == book_id, Book.user_id == user_id)
        )
        removed = result.rowcount > 0
        if removed:
            logger.debug(f"Deleted book {book_id} for user {user_id}")
        return removed

    async def list_all(self, user_id: uuid.UUID) -> list[Book]:
        """All of the user's books ordered by title."""
        query = select(Book).where(Book.user_id == user_id).order_by(Book.title, Book.id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def existing_duplicate_keys(self, user_id: uuid.UUID) -> set[tuple[str, str]]:
        """Duplicate keys of every book the user already owns."""
        query = select(Book.title, Book.author).where(Book.user_id == user_id)
        result = await self.db.execute(query)
        return {duplicate_key(title, author) for title, author in result.all()}


async def get_book_store(db: AsyncSession = Depends(get_db)) -> BookStore:
    """Dependency that provides the book store."""
    return BookStore(db)
