"""Genre API routes."""

from fastapi import APIRouter, Depends, status

from bookshelf.api.schemas import GenreCreate, GenreResponse
from bookshelf.core.auth import get_current_user_id
from bookshelf.services.genre_registry import GenreRegistry, get_genre_registry

router = APIRouter(
    prefix="/api/genres",
    tags=["genres"],
    dependencies=[Depends(get_current_user_id)],
)


@router.get("", response_model=list[GenreResponse])
async def list_genres(
    search: str | None = None,
    registry: GenreRegistry = Depends(get_genre_registry),
) -> list[GenreResponse]:
    """List genres, optionally filtered by name."""
    genres = await registry.list_genres(search)
    return [GenreResponse.model_validate(genre) for genre in genres]


@router.post("", response_model=GenreResponse, status_code=status.HTTP_201_CREATED)
async def create_genre(
    genre_data: GenreCreate,
    registry: GenreRegistry = Depends(get_genre_registry),
) -> GenreResponse:
    """Create a genre, or return the existing one with the same name."""
    genre = await registry.create_genre(genre_data.name)
    return GenreResponse.model_validate(genre)
