"""
Application configuration using Pydantic Settings
"""
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """
    # Database
    DATABASE_URL: str = "sqlite:///./offshore.db"

    # Application
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CURRENCY: str = "USD"

    # Calendar authority: 0 = Monday ... 6 = Sunday
    WEEK_STARTS_ON: int = 0

    # Budget view defaults (used when no stored preference exists)
    DEFAULT_SORT: str = "date_new_old"
    DEFAULT_SEGMENT: str = "planned"
    DEFAULT_BUDGET_PERIOD: str = "monthly"

    # View-state engine
    REFRESH_DEBOUNCE_SECONDS: float = 0.25
    FETCH_WORKERS: int = 4

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    def get_sqlalchemy_url(self) -> str:
        """
        Convert DATABASE_URL to SQLAlchemy format (postgresql+psycopg://)
        """
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+psycopg://", 1)
        return url


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance (singleton)
    """
    return Settings()
