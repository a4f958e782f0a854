"""Book API routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from bookshelf.api.schemas import (
    BookCreate,
    BookListResponse,
    BookResponse,
    BookStatsResponse,
    BookUpdate,
)
from bookshelf.core.auth import get_current_user_id
from bookshelf.core.config import get_settings
from bookshelf.core.errors import NotFoundError
from bookshelf.services.book_query import (
    DEFAULT_SORT_BY,
    DEFAULT_SORT_DIRECTION,
    BookQuery,
    BookQueryService,
    get_book_query_service,
)
from bookshelf.services.book_stats import BookStatsService, get_book_stats_service
from bookshelf.services.book_store import BookStore, get_book_store

router = APIRouter(prefix="/api/books", tags=["books"])


@router.get("", response_model=BookListResponse)
async def list_books(
    search: str | None = None,
    genre: list[str] = Query(default=[]),
    rating: int | None = None,
    sort_by: str = DEFAULT_SORT_BY,
    sort_direction: str = DEFAULT_SORT_DIRECTION,
    page: int = 1,
    page_size: int | None = None,
    user_id: UUID = Depends(get_current_user_id),
    books: BookQueryService = Depends(get_book_query_service),
) -> BookListResponse:
    """List the user's books with filtering, sorting and pagination.

    ``genre`` may be repeated; a book matches if it has any of them.
    """
    if page_size is None:
        page_size = get_settings().default_page_size

    result = await books.list_books(
        user_id,
        BookQuery(
            genres=genre,
            rating=rating,
            search=search,
            page=page,
            page_size=page_size,
            sort_by=sort_by,
            sort_direction=sort_direction,
        ),
    )

    return BookListResponse(
        items=[BookResponse.model_validate(book) for book in result.items],
        page=result.page,
        page_size=result.page_size,
        total_items=result.total_count,
        total_pages=result.total_pages,
        has_next=result.has_next,
        has_previous=result.has_previous,
    )


@router.get("/stats", response_model=BookStatsResponse)
async def get_book_stats(
    user_id: UUID = Depends(get_current_user_id),
    stats: BookStatsService = Depends(get_book_stats_service),
) -> BookStatsResponse:
    """Statistics over the user's whole collection."""
    return BookStatsResponse.model_validate(await stats.get_stats(user_id))


@router.post("", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
async def create_book(
    book_data: BookCreate,
    user_id: UUID = Depends(get_current_user_id),
    store: BookStore = Depends(get_book_store),
) -> BookResponse:
    """Create a new book."""
    book = await store.create(user_id, book_data.to_fields())
    return BookResponse.model_validate(book)


@router.get("/{book_id}", response_model=BookResponse)
async def get_book(
    book_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    store: BookStore = Depends(get_book_store),
) -> BookResponse:
    """Get a specific book by ID."""
    return BookResponse.model_validate(await store.get_by_id(user_id, book_id))


@router.put("/{book_id}", response_model=BookResponse)
async def update_book(
    book_id: UUID,
    book_data: BookUpdate,
    user_id: UUID = Depends(get_current_user_id),
    store: BookStore = Depends(get_book_store),
) -> BookResponse:
    """Replace a book's fields and genres."""
    book = await store.update(user_id, book_id, book_data.to_fields())
    return BookResponse.model_validate(book)


@router.delete("/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_book(
    book_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    store: BookStore = Depends(get_book_store),
) -> None:
    """Delete a book."""
    if not await store.delete(user_id, book_id):
        raise NotFoundError("Book not found")
