"""Service configuration using pydantic-settings."""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Proxy configuration.

    Loaded once at startup and passed to the proxy explicitly. Instances are
    frozen so nothing can change them while requests are in flight.
    """

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, env_prefix="DEEPSRT_", frozen=True
    )

    # Caching
    CACHE_MAX_AGE_SECONDS: int = 604800  # 7 days
    IS_DEV: bool = False  # dev mode uses a named cache partition
    DEV_CACHE_NAME: str = "dev_cache"
    CACHE_DIR: Path = Path("/cache")

    # API Security (purge is disabled while empty)
    API_KEY: str = ""

    # R2 Configuration
    R2_BUCKET: str = "deepsrt"
    R2_ENDPOINT_URL: str = ""
    R2_ACCESS_KEY_ID: str = ""
    R2_SECRET_ACCESS_KEY: str = ""

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[Path] = None
