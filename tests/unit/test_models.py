"""Unit tests for database models."""

import uuid
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from bookshelf.models.book import Book
from bookshelf.models.genre import BookGenre, Genre, genre_key
from bookshelf.models.import_job import ImportJob, ImportStatus


def _book(**overrides) -> Book:
    now = datetime.now(tz=timezone.utc)
    values = {
        "user_id": uuid.uuid4(),
        "title": "The Hobbit",
        "author": "J. R. R. Tolkien",
        "published_date": date(1937, 9, 21),
        "rating": 5,
        "created_at": now,
        "updated_at": now,
        "genre_links": [],
    }
    values.update(overrides)
    return Book(**values)


class TestBookModel:
    """Tests for the Book model."""

    async def test_create_book(self, test_session):
        """Test creating a book assigns an id."""
        book = _book(isbn="9780547928227")
        test_session.add(book)
        await test_session.flush()

        assert isinstance(book.id, uuid.UUID)
        assert book.title == "The Hobbit"
        assert book.edition is None
        assert book.genres == []

    async def test_book_repr(self):
        """Test book string representation."""
        repr_str = repr(_book())
        assert "Book" in repr_str
        assert "The Hobbit" in repr_str

    async def test_genres_property(self, test_session):
        """Test genre names come from the association rows."""
        test_session.add_all(
            [
                Genre(name="Fantasy", name_key="fantasy"),
                Genre(name="Classic", name_key="classic"),
            ]
        )
        book = _book(
            genre_links=[BookGenre(genre_name="Fantasy"), BookGenre(genre_name="Classic")]
        )
        test_session.add(book)
        await test_session.flush()

        assert sorted(book.genres) == ["Classic", "Fantasy"]

    async def test_rating_range_enforced_by_database(self, test_session):
        """Test the rating check constraint rejects out-of-range values."""
        test_session.add(_book(rating=6))
        with pytest.raises(IntegrityError):
            await test_session.flush()

    def test_genre_links_cascade_configured(self):
        """Test genre links are owned by the book."""
        links = Book.__mapper__.relationships["genre_links"]
        assert "delete" in links.cascade
        assert "delete-orphan" in links.cascade


class TestGenreModel:
    """Tests for the Genre model."""

    def test_genre_key(self):
        """Test lookup keys ignore case and surrounding space."""
        assert genre_key("  Science Fiction ") == "science fiction"

    async def test_create_genre_defaults(self, test_session):
        """Test a new genre is a user genre with a timestamp."""
        genre = Genre(name="Poetry", name_key="poetry")
        test_session.add(genre)
        await test_session.flush()

        assert genre.is_system_genre is False
        assert genre.created_at is not None

    async def test_name_key_is_unique(self, test_session):
        """Test two spellings of one genre cannot both be stored."""
        test_session.add(Genre(name="Poetry", name_key="poetry"))
        await test_session.flush()

        test_session.add(Genre(name="POETRY", name_key="poetry"))
        with pytest.raises(IntegrityError):
            await test_session.flush()


class TestImportJobModel:
    """Tests for the ImportJob model."""

    async def test_defaults(self, test_session):
        """Test a new job starts in progress with zero counts."""
        job = ImportJob(user_id=uuid.uuid4(), file_name="books.csv")
        test_session.add(job)
        await test_session.flush()

        result = await test_session.execute(select(ImportJob).where(ImportJob.id == job.id))
        stored = result.scalar_one()
        assert stored.status == ImportStatus.IN_PROGRESS
        assert stored.imported_rows == 0
        assert stored.skipped_rows == 0
        assert stored.completed_at is None
