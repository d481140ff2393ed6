"""Application configuration using Pydantic settings."""

from datetime import date, datetime
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PARIS_TZ = ZoneInfo("Europe/Paris")


def paris_now() -> datetime:
    """Current time in Paris (CET/CEST automatically)."""
    return datetime.now(PARIS_TZ)


def paris_now_naive() -> datetime:
    """Current time in Paris as naive datetime (for SQLAlchemy defaults).

    SQLite doesn't handle timezone-aware datetimes well, so we store
    Paris local time as naive datetime.
    """
    return paris_now().replace(tzinfo=None)


def paris_today() -> date:
    """Today's date in Paris timezone (race meeting dates are local)."""
    return paris_now().date()


# Distance bucket boundaries (metres) per discipline family: (short, long).
# Below `short` is a short race, at or above `long` is a long race.
DEFAULT_DISTANCE_RANGES: dict[str, tuple[int, int]] = {
    "flat": (1400, 2400),
    "trot": (2000, 3000),
    "obstacle": (3000, 4500),
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="EQUISCOPE_",
        extra="ignore",
    )

    # Storage
    data_dir: Path = Path("./data")
    db_path: Path = Path("./data/equiscope.db")

    # App
    debug: bool = False
    log_level: str = "INFO"
    disable_background: bool = False

    # Embeddings
    openai_api_key: str = ""
    embedding_model: str = "text-embedding-3-small"

    # Vector stores
    retention_days: int = 1
    min_documents: int = 5
    chat_top_k: int = 5
    cleanup_hour: int = 3

    # Analytics
    distance_ranges: dict[str, tuple[int, int]] = Field(
        default_factory=lambda: dict(DEFAULT_DISTANCE_RANGES)
    )

    def model_post_init(self, __context) -> None:
        """Fall back to the standard OPENAI_API_KEY env var when not prefixed."""
        import os

        if not self.openai_api_key:
            self.openai_api_key = os.getenv("OPENAI_API_KEY", "")

    @property
    def vectors_dir(self) -> Path:
        """Root folder holding one vector database per race."""
        return self.data_dir / "vectors"

    @property
    def database_url(self) -> str:
        """SQLite database URL for SQLAlchemy."""
        return f"sqlite+aiosqlite:///{self.db_path}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Export for convenience
settings = get_settings()
