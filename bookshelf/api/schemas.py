"""Pydantic schemas for API request/response validation."""

from datetime import date, datetime, timezone
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bookshelf.models.genre import GENRE_NAME_MAX_LENGTH
from bookshelf.models.import_job import ImportStatus
from bookshelf.services.book_store import BookFields

# Commas separate genres in CSV files
GenreName = Annotated[str, Field(max_length=GENRE_NAME_MAX_LENGTH, pattern=r"^[^,]*$")]


# Book schemas
class BookWrite(BaseModel):
    """Fields a client supplies when creating or replacing a book."""

    title: str = Field(..., min_length=1, max_length=200)
    author: str = Field(..., min_length=1, max_length=200)
    genres: list[GenreName] = Field(default_factory=list)
    published_date: date
    rating: int = Field(..., ge=1, le=5)
    edition: str | None = Field(None, max_length=100)
    isbn: str | None = Field(None, max_length=20)

    @field_validator("title", "author")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("published_date")
    @classmethod
    def not_in_future(cls, value: date) -> date:
        if value > datetime.now(tz=timezone.utc).date():
            raise ValueError("Published date cannot be in the future")
        return value

    def to_fields(self) -> BookFields:
        return BookFields(**self.model_dump())


class BookCreate(BookWrite):
    """Schema for creating a new book."""


class BookUpdate(BookWrite):
    """Schema for replacing a book; every field is overwritten."""


class BookResponse(BaseModel):
    """Schema for book response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    author: str
    genres: list[str]
    published_date: date
    rating: int
    edition: str | None
    isbn: str | None
    created_at: datetime
    updated_at: datetime


class BookListResponse(BaseModel):
    """Schema for one page of books."""

    items: list[BookResponse]
    page: int
    page_size: int
    total_items: int
    total_pages: int
    has_next: bool
    has_previous: bool


# Stats schemas
class GenreStatResponse(BaseModel):
    """Schema for one genre distribution entry."""

    model_config = ConfigDict(from_attributes=True)

    genre: str
    count: int
    average_rating: float


class RatingBucketResponse(BaseModel):
    """Schema for one rating distribution entry."""

    model_config = ConfigDict(from_attributes=True)

    rating: int
    count: int


class BookStatsResponse(BaseModel):
    """Schema for collection statistics."""

    model_config = ConfigDict(from_attributes=True)

    total_books: int
    average_rating: float
    genre_distribution: list[GenreStatResponse]
    rating_distribution: list[RatingBucketResponse]
    recent_books: list[BookResponse]


# Genre schemas
class GenreCreate(BaseModel):
    """Schema for creating a genre."""

    name: GenreName = Field(..., min_length=1)


class GenreResponse(BaseModel):
    """Schema for genre response."""

    model_config = ConfigDict(from_attributes=True)

    name: str
    is_system_genre: bool
    created_at: datetime


# Bulk import schemas
class SkippedRowResponse(BaseModel):
    """Schema for a row left out of an import."""

    model_config = ConfigDict(from_attributes=True)

    row_number: int
    title: str
    author: str
    reason: str


class ImportSummaryResponse(BaseModel):
    """Schema for the result of a CSV import."""

    model_config = ConfigDict(from_attributes=True)

    job_id: UUID
    status: ImportStatus
    imported_count: int
    skipped_count: int
    total_processed: int
    cancelled: bool
    skipped_rows: list[SkippedRowResponse]


class ImportJobResponse(BaseModel):
    """Schema for import job status."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    file_name: str
    status: ImportStatus
    total_rows: int
    imported_rows: int
    skipped_rows: int
    created_at: datetime
    completed_at: datetime | None
