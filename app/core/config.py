from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "ClassBridge Progress Reports"
    environment: str = "development"  # development, test, production

    # Database
    database_url: str = "sqlite:///./classbridge_reports.db"

    # Auth (token verification only; login lives in the main product)
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Logging
    log_level: str = "INFO"
    log_dir: str = ""  # empty disables the rotating file handler

    # Rate limiting
    rate_limit_enabled: bool = True
    report_pdf_rate_limit: str = "20/minute"

    # Report pipeline
    report_default_days: int = 90
    report_retry_attempts: int = 3
    report_retry_delay_seconds: float = 1.0
    report_timeout_seconds: float = 20.0
    report_fallback_timeout_seconds: float = 5.0
    # Capped by the snapshot schema (MAX_LISTED_ITEMS)
    report_recent_assignments_limit: int = Field(default=5, ge=1, le=5)
    report_goals_limit: int = Field(default=5, ge=1, le=5)
    report_product_label: str = "ClassBridge Learning Platform"


settings = Settings()
