"""Genre and book-genre association models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookshelf.core.database import Base

if TYPE_CHECKING:
    from bookshelf.models.book import Book

GENRE_NAME_MAX_LENGTH = 50
GENRE_SEPARATOR = ","

SYSTEM_GENRES = (
    "Fiction",
    "Non-Fiction",
    "Science",
    "Technology",
    "Biography",
    "History",
    "Romance",
    "Mystery",
    "Fantasy",
    "Self-Help",
)


def genre_key(name: str) -> str:
    """Case-insensitive lookup key for a genre name."""
    return name.strip().lower()


class Genre(Base):
    """A genre tag shared by all users.

    ``name`` keeps the casing of whoever created the genre first; ``name_key``
    holds the lower-cased name and carries the unique index that stops two
    spellings of the same genre from coexisting.
    """

    __tablename__ = "genres"

    name: Mapped[str] = mapped_column(String(GENRE_NAME_MAX_LENGTH), primary_key=True)
    name_key: Mapped[str] = mapped_column(
        String(GENRE_NAME_MAX_LENGTH),
        unique=True,
        index=True,
        nullable=False,
    )
    is_system_genre: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(tz=timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Genre(name='{self.name}', is_system_genre={self.is_system_genre})>"


class BookGenre(Base):
    """Association between a book and a genre."""

    __tablename__ = "book_genres"

    book_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("books.id", ondelete="CASCADE"),
        primary_key=True,
    )
    genre_name: Mapped[str] = mapped_column(
        String(GENRE_NAME_MAX_LENGTH),
        ForeignKey("genres.name"),
        primary_key=True,
    )

    # Relationships
    book: Mapped[Book] = relationship("Book", back_populates="genre_links")

    def __repr__(self) -> str:
        return f"<BookGenre(book_id={self.book_id}, genre_name='{self.genre_name}')>"
