"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from bookshelf import __version__
from bookshelf.api.books import router as books_router
from bookshelf.api.bulk_import import router as bulk_import_router
from bookshelf.api.genres import router as genres_router
from bookshelf.core.config import get_settings
from bookshelf.core.database import async_session_maker, engine, init_db
from bookshelf.core.errors import register_exception_handlers
from bookshelf.core.tracing import setup_tracing, shutdown_tracing
from bookshelf.services.genre_registry import GenreRegistry


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    await init_db()
    async with async_session_maker() as session:
        await GenreRegistry(session).seed_system_genres()
    yield
    # Shutdown
    shutdown_tracing()
    await engine.dispose()


settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Bookshelf",
    description=(
        "Personal book collection API with filtering, statistics "
        "and CSV import/export"
    ),
    version=__version__,
    lifespan=lifespan,
)

# Setup OpenTelemetry tracing (must be done before adding routes)
setup_tracing(app)

register_exception_handlers(app)

# Include routers
app.include_router(books_router)
app.include_router(genres_router)
app.include_router(bulk_import_router)


@app.get("/health")
async def health() -> dict:
    """Liveness check."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "bookshelf.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
    )
