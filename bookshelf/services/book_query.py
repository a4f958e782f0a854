"""Filtered, sorted and paginated listing of a user's books."""

import math
import uuid
from dataclasses import dataclass, field

from fastapi import Depends
from sqlalchemy import ColumnElement, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bookshelf.core.config import get_settings
from bookshelf.core.database import get_db
from bookshelf.core.errors import ValidationError
from bookshelf.models.book import MAX_RATING, MIN_RATING, Book
from bookshelf.models.genre import BookGenre, Genre, genre_key

# Accepts both camelCase and snake_case spellings once lower-cased and
# stripped of underscores.
SORT_COLUMNS = {
    "title": Book.title,
    "author": Book.author,
    "publisheddate": Book.published_date,
    "rating": Book.rating,
    "createdat": Book.created_at,
}
SORT_DIRECTIONS = ("asc", "desc")
DEFAULT_SORT_BY = "createdAt"
DEFAULT_SORT_DIRECTION = "desc"


@dataclass
class BookQuery:
    """Filter, sort and page parameters for listing books.

    All filters are optional and combine with AND. ``genres`` matches books
    carrying at least one of the named genres, ``rating`` is an exact match
    and ``search`` is a case-insensitive substring of title or author.
    """

    genres: list[str] = field(default_factory=list)
    rating: int | None = None
    search: str | None = None
    page: int = 1
    page_size: int = 20
    sort_by: str = DEFAULT_SORT_BY
    sort_direction: str = DEFAULT_SORT_DIRECTION


@dataclass
class BookPage:
    """One page of a listing plus the size of the whole filtered set."""

    items: list[Book]
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1


class BookQueryService:
    """Runs listing queries scoped to a single owner."""

    def __init__(self, db: AsyncSession, max_page_size: int | None = None) -> None:
        self.db = db
        self.max_page_size = max_page_size or get_settings().max_page_size

    async def list_books(self, user_id: uuid.UUID, query: BookQuery) -> BookPage:
        """Return the requested page and the total number of matching books.

        Pages past the end come back empty with the correct total. Rows tied
        on the sort key are ordered by id so pages never overlap or skip.
        """
        sort_column, descending = self._resolve_sort(query)
        self._validate(query)
        conditions = self._conditions(user_id, query)

        count_query = select(func.count()).select_from(Book).where(*conditions)
        total = (await self.db.execute(count_query)).scalar_one()

        if descending:
            ordering = (sort_column.desc(), Book.id.desc())
        else:
            ordering = (sort_column.asc(), Book.id.asc())

        page_query = (
            select(Book)
            .where(*conditions)
            .order_by(*ordering)
            .offset((query.page - 1) * query.page_size)
            .limit(query.page_size)
        )
        result = await self.db.execute(page_query)

        return BookPage(
            items=list(result.scalars().all()),
            total_count=total,
            page=query.page,
            page_size=query.page_size,
        )

    def _validate(self, query: BookQuery) -> None:
        if query.page < 1:
            raise ValidationError("Page must be at least 1")
        if query.page_size < 1:
            raise ValidationError("Page size must be at least 1")
        if query.page_size > self.max_page_size:
            raise ValidationError(f"Page size cannot exceed {self.max_page_size}")
        if query.rating is not None and not MIN_RATING <= query.rating <= MAX_RATING:
            raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")

    @staticmethod
    def _resolve_sort(query: BookQuery) -> tuple:
        key = (query.sort_by or DEFAULT_SORT_BY).strip().lower().replace("_", "")
        if key not in SORT_COLUMNS:
            raise ValidationError(
                "Invalid sort field. Must be one of: "
                "title, author, publishedDate, rating, createdAt"
            )
        direction = (query.sort_direction or DEFAULT_SORT_DIRECTION).strip().lower()
        if direction not in SORT_DIRECTIONS:
            raise ValidationError("Invalid sort direction. Must be 'asc' or 'desc'")
        return SORT_COLUMNS[key], direction == "desc"

    @staticmethod
    def _conditions(user_id: uuid.UUID, query: BookQuery) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = [Book.user_id == user_id]

        keys = {genre_key(name) for name in query.genres if name.strip()}
        if keys:
            tagged = (
                select(BookGenre.book_id)
                .join(Genre, Genre.name == BookGenre.genre_name)
                .where(Genre.name_key.in_(keys))
            )
            conditions.append(Book.id.in_(tagged))

        if query.rating is not None:
            conditions.append(Book.rating == query.rating)

        if query.search and query.search.strip():
            term = query.search.strip()
            conditions.append(
                Book.title.icontains(term, autoescape=True)
                | Book.author.icontains(term, autoescape=True)
            )

        return conditions


async def get_book_query_service(db: AsyncSession = Depends(get_db)) -> BookQueryService:
    """Dependency that provides the book query service."""
    return BookQueryService(db)
