"""Pytest configuration and fixtures."""

import uuid
from collections.abc import AsyncGenerator
from datetime import date

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import bookshelf.models  # noqa: F401
from bookshelf.core.database import Base, get_db
from bookshelf.main import app
from bookshelf.services.book_store import BookFields, BookStore

# Use an in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session() as session:
        yield session


@pytest.fixture
async def override_get_db(test_session: AsyncSession):
    """Override the get_db dependency for testing."""

    async def _override_get_db():
        yield test_session

    return _override_get_db


@pytest.fixture
def user_id() -> uuid.UUID:
    """The user making requests in a test."""
    return uuid.uuid4()


@pytest.fixture
def other_user_id() -> uuid.UUID:
    """A second user whose data must stay invisible to the first."""
    return uuid.uuid4()


@pytest.fixture
async def client(override_get_db, user_id) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client authenticated as ``user_id``."""
    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-User-Id": str(user_id)},
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def store(test_session: AsyncSession) -> BookStore:
    """Book store bound to the test session."""
    return BookStore(test_session)


def make_fields(**overrides) -> BookFields:
    """Valid book fields with optional overrides."""
    values = {
        "title": "Test Book",
        "author": "Test Author",
        "published_date": date(2001, 5, 17),
        "rating": 3,
        "edition": None,
        "isbn": None,
        "genres": [],
    }
    values.update(overrides)
    return BookFields(**values)


@pytest.fixture
def book_fields():
    """Factory for valid book fields."""
    return make_fields


@pytest.fixture
async def sample_book(store: BookStore, user_id):
    """Create a sample book for testing."""
    return await store.create(
        user_id,
        make_fields(
            title="Dune",
            author="Frank Herbert",
            published_date=date(1965, 8, 1),
            rating=4,
            edition="First Edition",
            isbn="9780441013593",
            genres=["Fiction"],
        ),
    )


@pytest.fixture
async def library(store: BookStore, sample_book, user_id):
    """The two-book collection used across the query and stats tests."""
    clean_code = await store.create(
        user_id,
        make_fields(
            title="Clean Code",
            author="Robert C. Martin",
            published_date=date(2008, 8, 1),
            rating=5,
            genres=["Programming"],
        ),
    )
    return [clean_code, sample_book]
