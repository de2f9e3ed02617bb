"""Application configuration."""

import logging
import os

from pydantic import ValidationError as SettingsValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from where_api.errors import FatalConfigError

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    where_private_key: str
    supabase_url: str
    supabase_service_key: str
    digital_collections_token: str | None = None
    mods_base_url: str = "http://api.repo.nypl.org/api/v1/items/mods_captures"
    item_url_base: str = "http://digitalcollections.nypl.org/items/"
    data_dir: str = "data"
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3000
    push_port: int = 9889
    database_timeout_seconds: float = 10.0
    broadcast_send_timeout_seconds: float = 5.0
    subscriber_queue_size: int = 100
    locations_latest_limit: int = 100
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def load_settings() -> Settings:
    """Load settings, turning missing or invalid values into a fatal error."""
    try:
        settings = Settings()
    except SettingsValidationError as exc:
        missing = sorted(
            str(error["loc"][0]).upper() for error in exc.errors() if error["loc"]
        )
        raise FatalConfigError(
            f"Invalid configuration, please set: {', '.join(missing)}"
        ) from exc
    if not settings.where_private_key.strip():
        raise FatalConfigError("Please set WHERE_PRIVATE_KEY environment variable!")
    if not settings.digital_collections_token:
        logger.warning(
            "DIGITAL_COLLECTIONS_TOKEN is not set, the /mods API is disabled"
        )
    return settings
