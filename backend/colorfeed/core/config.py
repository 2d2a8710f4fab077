from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Any


class Settings(BaseSettings):
    """Application settings"""

    # Application
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "colorfeed"

    # Upstream listing
    COMMONS_API_URL: str = "https://commons.wikimedia.org/w/api.php"
    API_PAGE_MAX: int = 500  # most results the API returns per request
    USER_AGENT: str = "colorfeed/0.1 (https://github.com/colorfeed/colorfeed)"
    HTTP_TIMEOUT_SECONDS: float = 10.0
    MAX_IMAGE_BYTES: int = 25 * 1024 * 1024

    # Session defaults
    DEFAULT_MAX_IMAGES: int = 100
    DEFAULT_WORKERS: int = 25
    DEFAULT_QUEUE_CAPACITY: int = 100
    DEFAULT_DEADLINE_SECONDS: float = 20.0

    # Color computation
    CACHE_CAPACITY: int = 50000
    COLOR_STRATEGY: str = "first"
    CANCEL_CHECK_ROWS: int = 16  # rows scanned between cancellation checks

    # Background cache warming
    REFRESH_ENABLED: bool = False
    REFRESH_MAX_IMAGES: int = 1000
    REFRESH_INTERVAL_SECONDS: float = 1800.0
    REFRESH_DEADLINE_SECONDS: float = 600.0

    @field_validator("COLOR_STRATEGY", mode="before")
    @classmethod
    def normalize_strategy(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )


settings = Settings()
