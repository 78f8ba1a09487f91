"""
Application configuration and environment settings.
"""
from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List, Optional, Union


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "RideShare"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./rideshare.db"
    DB_ECHO: bool = False
    DB_BUSY_TIMEOUT: float = 30.0  # Seconds a writer waits for the SQLite lock

    # Background worker pool for store operations
    WORKER_POOL_SIZE: int = 8

    # Search
    POPULAR_TRIPS_LIMIT: int = 10
    DEFAULT_SEARCH_RADIUS_KM: float = 5.0
    SEARCH_TIMEZONE: Optional[str] = None  # IANA name; None means the host's local zone

    # Seat inventory / workflow hardening
    CLAMP_RELEASE_TO_CAPACITY: bool = True
    CASCADE_TRIP_CANCELLATION: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    # CORS
    CORS_ORIGINS: Union[List[str], str] = ["http://localhost:3000", "http://localhost:8080"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("WORKER_POOL_SIZE", "POPULAR_TRIPS_LIMIT")
    @classmethod
    def must_be_positive(cls, v):
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
