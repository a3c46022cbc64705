from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Database settings
    DATABASE_URL: str = "postgresql://localhost:5432/fintrack"

    # Redis settings (optional - enables the cross-instance job lock)
    REDIS_URL: str | None = None

    # Auth settings
    AUTH_JWKS_URL: str = "http://localhost:8000/.well-known/jwks.json"
    AUTH_AUDIENCE: str = "authenticated"
    AUTH_ALGORITHMS: str = "RS256,ES256"

    # Google OAuth settings
    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None

    ENCRYPTION_KEY: str | None = None

    # =================================================================
    # GMAIL IMPORT SETTINGS
    # =================================================================
    GMAIL_CRON_SCHEDULE: str = "0 2 * * *"
    GMAIL_FETCH_CONCURRENCY: int = 5
    ENABLE_GMAIL_CRON: bool = True
    GMAIL_FETCH_WINDOW_DAYS: int = 30
    GMAIL_SCHEDULED_WINDOW_DAYS: int = 7
    GMAIL_FETCH_MAX_RESULTS: int = 50
    GMAIL_ALLOWED_SENDER_PATTERNS: str = ""
    GMAIL_AUTO_CONFIRM_TRANSACTIONS: bool = False
    GMAIL_USER_SYNC_TIMEOUT_SECONDS: float = 120.0

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def auth_algorithms(self) -> list[str]:
        return [alg.strip() for alg in self.AUTH_ALGORITHMS.split(",") if alg.strip()]

    def gmail_sender_patterns(self) -> list[str]:
        """Sender substrings used to build the Gmail relevance query."""
        return [p.strip() for p in self.GMAIL_ALLOWED_SENDER_PATTERNS.split(",") if p.strip()]

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update(
                {
                    "min_size": 1,
                    "max_size": 5,
                    "timeout": 15.0,
                }
            )

        return config

    def get_gmail_job_config(self) -> dict:
        """Scheduled Gmail fetch configuration, in one place for logging and status."""
        return {
            "enabled": self.ENABLE_GMAIL_CRON,
            "schedule": self.GMAIL_CRON_SCHEDULE,
            "concurrency": max(1, self.GMAIL_FETCH_CONCURRENCY),
            "window_days": self.GMAIL_SCHEDULED_WINDOW_DAYS,
            "user_timeout_seconds": self.GMAIL_USER_SYNC_TIMEOUT_SECONDS,
        }


settings = Settings()
