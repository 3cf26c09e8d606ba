"""Application configuration using Pydantic settings."""

from datetime import datetime
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict

HK_TZ = ZoneInfo("Asia/Hong_Kong")


def hk_now() -> datetime:
    """Current time in Hong Kong."""
    return datetime.now(HK_TZ)


def hk_now_naive() -> datetime:
    """Current Hong Kong time as naive datetime (for SQLAlchemy defaults).

    SQLite doesn't handle timezone-aware datetimes well, so we store
    Hong Kong local time as naive datetime.
    """
    return hk_now().replace(tzinfo=None)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="HKRACE_",
        extra="ignore",
    )

    # Database
    db_path: Path = Path("./data/hkrace.db")

    # App
    debug: bool = False
    log_level: str = "INFO"

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
