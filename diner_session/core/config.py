"""Application configuration."""
import re

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    # Menu session API
    api_url: str = "https://api.menuvire.com/api"
    request_timeout: float = 10.0

    # Ordering
    poll_interval_seconds: float = 5.0
    default_currency: str = "LKR"
    single_flight_orders: bool = True

    # Client-side storage
    device_cookie_days: int = 365
    session_cookie_days: int = 7
    database_url: str = "sqlite+aiosqlite:///./diner_session.db"

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="DINER_SESSION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def api_base(self) -> str:
        """API root with exactly one trailing /api segment."""
        return re.sub(r"/api/?$", "", self.api_url) + "/api"


settings = Settings()
