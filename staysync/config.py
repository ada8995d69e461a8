from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Database - PostgreSQL for production, SQLite for development
    database_url: str = Field(
        default="sqlite:///./staysync.db",
        alias="DATABASE_URL"
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # CORS - Frontend URLs from environment (comma-separated)
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173",
        alias="ALLOWED_ORIGINS"
    )

    # Admin surface (manual sync, sync status). Empty disables the endpoints.
    admin_api_token: str = Field(default="", alias="ADMIN_API_TOKEN")

    # ==============================================
    # Rentals United (upstream inventory provider)
    # ==============================================
    ru_base_url: str = Field(
        default="https://rm.rentalsunited.com/api/Handler.ashx",
        alias="RU_BASE_URL"
    )
    ru_username: str = Field(default="", alias="RU_USERNAME")
    ru_password: str = Field(default="", alias="RU_PASSWORD")

    # HTTP timeout for every upstream call
    ru_timeout_seconds: float = Field(default=30.0, alias="RU_TIMEOUT_SECONDS")

    # Password RU sends in push notifications (LNM_* requests)
    ru_webhook_hash: str = Field(default="", alias="RU_WEBHOOK_HASH")

    # ==============================================
    # Daily cache
    # ==============================================
    # Days ahead of today pulled on every sync (today itself is included)
    cache_window_days: int = Field(default=180, ge=1, alias="CACHE_WINDOW_DAYS")

    # Days in the past kept before retention cleanup deletes a record
    cache_retention_days: int = Field(default=180, ge=1, alias="CACHE_RETENTION_DAYS")

    # One daily cadence plus slack
    cache_stale_after_hours: int = Field(default=26, ge=1, alias="CACHE_STALE_AFTER_HOURS")

    # Upstream prices are quoted in a single fixed currency
    cache_currency: str = Field(default="USD", max_length=3, alias="CACHE_CURRENCY")

    # ==============================================
    # Scheduler
    # ==============================================
    sync_enabled: bool = Field(default=True, alias="SYNC_ENABLED")
    sync_cron_hour: int = Field(default=2, ge=0, le=23, alias="SYNC_CRON_HOUR")
    sync_cron_minute: int = Field(default=0, ge=0, le=59, alias="SYNC_CRON_MINUTE")
    retention_cron_hour: int = Field(default=4, ge=0, le=23, alias="RETENTION_CRON_HOUR")
    scheduler_timezone: str = Field(default="UTC", alias="SCHEDULER_TIMEZONE")

    # Pause between units during a pass (upstream rate limit)
    sync_unit_delay_seconds: float = Field(default=0.5, ge=0, alias="SYNC_UNIT_DELAY_SECONDS")

    @field_validator("scheduler_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown IANA zone names at startup instead of at the first run"""
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def has_ru_credentials(self) -> bool:
        """Check if upstream credentials are configured"""
        return bool(self.ru_username and self.ru_password)

    @property
    def cors_origins(self) -> List[str]:
        """
        Parse allowed origins from comma-separated string.
        Returns a list suitable for CORSMiddleware.
        """
        origins = []
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in origins:
                origins.append(origin)

        return origins if origins else ["http://localhost:5173"]

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Initialize settings on module load
settings = get_settings()
