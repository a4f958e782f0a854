"""Application configuration."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "development"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./bookshelf.db"
    database_echo: bool = False

    # Listing
    default_page_size: int = 20
    max_page_size: int = 100
    recent_books_count: int = 5

    # Bulk import
    max_import_file_bytes: int = 10 * 1024 * 1024

    # OpenTelemetry
    otel_enabled: bool = False
    otel_service_name: str = "bookshelf-api"
    otel_exporter_otlp_endpoint: str = "http://localhost:4317"
    otel_exporter_otlp_protocol: str = "grpc"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
