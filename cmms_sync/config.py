from pathlib import Path

from pydantic_settings import BaseSettings
from functools import lru_cache

_PACKAGE_DIR = Path(__file__).resolve().parent
_PROJECT_DIR = _PACKAGE_DIR.parent
_ENV_FILES = (
    _PROJECT_DIR / ".env",
    ".env",
)


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    app_env: str = "development"

    # Persistence service (REST) and realtime change feed
    api_base_url: str = "http://localhost:3005/api"
    realtime_url: str = "http://localhost:3005/realtime"
    access_token: str = ""
    request_timeout_seconds: float = 30.0

    # Optimistic mutations: remote calls slower than this are rolled back
    mutation_timeout_seconds: float = 30.0

    # Entity-type catalog
    entity_types_file: str = str(_PACKAGE_DIR / "data" / "entity_types.yaml")

    # Inventory
    low_stock_alerts_enabled: bool = True

    # Logging — per-category log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = "INFO"                  # Root / app-wide
    log_level_http: str = "WARNING"          # httpx / httpcore — outbound HTTP
    log_level_realtime: str = "INFO"         # change-feed adapters + listeners
    log_level_mutations: str = "INFO"        # MutationCoordinator

    model_config = {
        "env_file": _ENV_FILES,
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance — reads .env once."""
    return Settings()
