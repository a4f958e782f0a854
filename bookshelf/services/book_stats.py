"""Collection-wide statistics for a user's books."""

import uuid
from dataclasses import dataclass

from fastapi import Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bookshelf.core.config import get_settings
from bookshelf.core.database import get_db
from bookshelf.models.book import MAX_RATING, MIN_RATING, Book
from bookshelf.models.genre import BookGenre


@dataclass
class GenreStat:
    """Number of books carrying a genre and their mean rating."""

    genre: str
    count: int
    average_rating: float


@dataclass
class RatingBucket:
    """Number of books with a given rating."""

    rating: int
    count: int


@dataclass
class BookStats:
    """Summary of a user's whole collection."""

    total_books: int
    average_rating: float
    genre_distribution: list[GenreStat]
    rating_distribution: list[RatingBucket]
    recent_books: list[Book]


class BookStatsService:
    """Aggregates over every book a user owns, ignoring list filters."""

    def __init__(self, db: AsyncSession, recent_count: int | None = None) -> None:
        self.db = db
        self.recent_count = recent_count or get_settings().recent_books_count

    async def get_stats(self, user_id: uuid.UUID) -> BookStats:
        """Compute totals, distributions and the most recently added books."""
        total_books, average_rating = await self._totals(user_id)
        return BookStats(
            total_books=total_books,
            average_rating=average_rating,
            genre_distribution=await self.genre_distribution(user_id),
            rating_distribution=await self.rating_distribution(user_id),
            recent_books=await self.recent_books(user_id, self.recent_count),
        )

    async def _totals(self, user_id: uuid.UUID) -> tuple[int, float]:
        query = select(func.count(Book.id), func.avg(Book.rating)).where(Book.user_id == user_id)
        count, average = (await self.db.execute(query)).one()
        # AVG over no rows is NULL
        return count, float(average) if average is not None else 0.0

    async def genre_distribution(self, user_id: uuid.UUID) -> list[GenreStat]:
        """Per-genre count and mean rating; a book counts once per genre it has."""
        query = (
            select(
                BookGenre.genre_name,
                func.count(Book.id).label("count"),
                func.avg(Book.rating).label("average_rating"),
            )
            .join(Book, Book.id == BookGenre.book_id)
            .where(Book.user_id == user_id)
            .group_by(BookGenre.genre_name)
            .order_by(func.count(Book.id).desc(), BookGenre.genre_name)
        )
        result = await self.db.execute(query)
        return [
            GenreStat(genre=genre, count=count, average_rating=float(average))
            for genre, count, average in result.all()
        ]

    async def rating_distribution(self, user_id: uuid.UUID) -> list[RatingBucket]:
        """Book count for every rating value, zeros included."""
        query = (
            select(Book.rating, func.count(Book.id))
            .where(Book.user_id == user_id)
            .group_by(Book.rating)
        )
        counts = dict((await self.db.execute(query)).all())
        return [
            RatingBucket(rating=rating, count=counts.get(rating, 0))
            for rating in range(MIN_RATING, MAX_RATING + 1)
        ]

    async def recent_books(self, user_id: uuid.UUID, count: int) -> list[Book]:
        """The newest books by creation time."""
        query = (
            select(Book)
            .where(Book.user_id == user_id)
            .order_by(Book.created_at.desc(), Book.id.desc())
            .limit(count)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())


async def get_book_stats_service(db: AsyncSession = Depends(get_db)) -> BookStatsService:
    """Dependency that provides the stats service."""
    return BookStatsService(db)
