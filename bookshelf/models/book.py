"""Book model."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Date, DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookshelf.core.database import Base

if TYPE_CHECKING:
    from bookshelf.models.genre import BookGenre

TITLE_MAX_LENGTH = 200
AUTHOR_MAX_LENGTH = 200
EDITION_MAX_LENGTH = 100
ISBN_MAX_LENGTH = 20
MIN_RATING = 1
MAX_RATING = 5


class Book(Base):
    """Model representing one entry in a user's library."""

    __tablename__ = "books"
    __table_args__ = (
        CheckConstraint(
            f"rating >= {MIN_RATING} AND rating <= {MAX_RATING}",
            name="ck_books_rating_range",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(TITLE_MAX_LENGTH), nullable=False)
    author: Mapped[str] = mapped_column(String(AUTHOR_MAX_LENGTH), nullable=False)
    published_date: Mapped[date] = mapped_column(Date, nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    edition: Mapped[str | None] = mapped_column(String(EDITION_MAX_LENGTH), nullable=True)
    isbn: Mapped[str | None] = mapped_column(String(ISBN_MAX_LENGTH), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Relationships
    genre_links: Mapped[list[BookGenre]] = relationship(
        "BookGenre",
        back_populates="book",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BookGenre.genre_name",
    )

    @property
    def genres(self) -> list[str]:
        """Names of the genres attached to this book."""
        return [link.genre_name for link in self.genre_links]

    def __repr__(self) -> str:
        return f"<Book(id={self.id}, title='{self.title}', author='{self.author}')>"
