"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

from src.heartrate.errors import ConfigMissing


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "heartsync"
    app_version: str = "0.1.0"
    log_level: str = "INFO"

    # --- Whoop login ---
    login_email: str = Field(min_length=1)
    login_password: str = Field(min_length=1)
    login_origin: str = "https://app.whoop.com"
    login_timeout_seconds: float = Field(default=60.0, gt=0)
    browser_headless: bool = True

    # --- Metrics API ---
    api_base_url: str = "https://api.prod.whoop.com"
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    metrics_step_seconds: int = Field(default=60, gt=0)

    # --- Sync ---
    sync_interval_minutes: int = Field(default=5, gt=0)
    lookback_hours: int = Field(default=24, gt=0)
    max_window_hours: int | None = Field(default=None, gt=0)  # unset = no cap

    # --- Postgres ---
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "whoop"
    db_user: str = "whoop"
    db_password: str = "whoop"
    db_pool_max_size: int = Field(default=5, gt=0)
    db_command_timeout_seconds: float = 30.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


def load_settings(**overrides) -> Settings:
    """Build Settings, turning validation errors into ``ConfigMissing``."""
    try:
        return Settings(**overrides)  # type: ignore[call-arg]
    except ValidationError as exc:
        fields = sorted({str(err["loc"][0]).upper() for err in exc.errors() if err["loc"]})
        raise ConfigMissing(
            f"Missing or invalid configuration: {', '.join(fields)}", fields=fields
        ) from exc


@lru_cache
def get_settings() -> Settings:
    return load_settings()
