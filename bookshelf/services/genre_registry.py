"""Genre registry: resolves free-text genre names to shared genre records."""

import logging
from collections.abc import Iterable

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookshelf.core.database import get_db
from bookshelf.core.errors import ValidationError
from bookshelf.models.genre import (
    GENRE_NAME_MAX_LENGTH,
    GENRE_SEPARATOR,
    SYSTEM_GENRES,
    Genre,
    genre_key,
)

logger = logging.getLogger(__name__)


class GenreRegistry:
    """Create-or-get access to the global genre namespace."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def ensure_genres_exist(self, names: Iterable[str]) -> list[Genre]:
        """Return one genre per distinct name, creating the missing ones.

        Names are trimmed and blanks dropped. Names differing only in case
        count once, and the first spelling seen is the one a new genre is
        created with. Existing genres are returned unchanged whatever casing
        the caller used. New genres are committed before returning.
        """
        wanted: dict[str, str] = {}
        for raw in names:
            name = raw.strip()
            if not name:
                continue
            key = genre_key(name)
            if key not in wanted:
                _check_name(name)
                wanted[key] = name

        if not wanted:
            return []

        found = await self._find_by_keys(wanted.keys())
        missing = [key for key in wanted if key not in found]
        for key in missing:
            found[key] = await self._create_or_get(wanted[key])
        if missing:
            await self.db.commit()

        return [found[key] for key in wanted]

    async def list_genres(self, search: str | None = None) -> list[Genre]:
        """List genres ordered by name, optionally filtered by substring."""
        query = select(Genre)
        if search and search.strip():
            query = query.where(Genre.name_key.contains(genre_key(search), autoescape=True))
        result = await self.db.execute(query.order_by(Genre.name_key))
        return list(result.scalars().all())

    async def create_genre(self, name: str) -> Genre:
        """Create a user genre, or return the existing one with that name."""
        name = name.strip()
        if not name:
            raise ValidationError("Genre name is required")
        genres = await self.ensure_genres_exist([name])
        return genres[0]

    async def seed_system_genres(self) -> int:
        """Make sure the built-in genres exist. Returns how many were added."""
        found = await self._find_by_keys(genre_key(name) for name in SYSTEM_GENRES)
        added = 0
        for name in SYSTEM_GENRES:
            if genre_key(name) in found:
                continue
            await self._create_or_get(name, is_system_genre=True)
            added += 1
        if added:
            await self.db.commit()
            logger.info(f"Seeded {added} system genres")
        return added

    async def _find_by_keys(self, keys: Iterable[str]) -> dict[str, Genre]:
        query = select(Genre).where(Genre.name_key.in_(list(keys)))
        result = await self.db.execute(query)
        return {genre.name_key: genre for genre in result.scalars().all()}

    async def _create_or_get(self, name: str, is_system_genre: bool = False) -> Genre:
        key = genre_key(name)
        genre = Genre(name=name, name_key=key, is_system_genre=is_system_genre)
        try:
            async with self.db.begin_nested():
                self.db.add(genre)
        except IntegrityError:
            # Lost a race with a concurrent creator; use their row
            existing = (await self._find_by_keys([key])).get(key)
            if existing is None:
                raise
            logger.debug(f"Genre '{name}' was created concurrently, reusing '{existing.name}'")
            return existing

        logger.info(f"Created genre '{name}'")
        return genre


def _check_name(name: str) -> None:
    if len(name) > GENRE_NAME_MAX_LENGTH:
        raise ValidationError(f"Genre names cannot exceed {GENRE_NAME_MAX_LENGTH} characters")
    # Genres are comma-separated in CSV files
    if GENRE_SEPARATOR in name:
        raise ValidationError("Genre names cannot contain commas")


async def get_genre_registry(db: AsyncSession = Depends(get_db)) -> GenreRegistry:
    """Dependency that provides the genre registry."""
    return GenreRegistry(db)
