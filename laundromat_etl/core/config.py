"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


class ConfigError(RuntimeError):
    """Raised when mandatory configuration is missing."""


@dataclass(frozen=True)
class Settings:
    database_url: str
    google_api_key: str
    batch_size: int = 25
    request_delay: float = 0.5
    batch_sleep: float = 1.0
    max_iterations: int = 100
    nearby_radius: int = 500
    nearby_max_radius: int = 10000
    static_maps_dir: str = "public/maps/static"
    streetview_dir: str = "public/streetview"
    geocode_cache_dir: str = "cache/geocoding"
    log_file: Optional[str] = None
    log_level: str = "INFO"

    def require_database_url(self) -> str:
        if not self.database_url:
            raise ConfigError("DATABASE_URL must be set in the environment.")
        return self.database_url

    def require_google_api_key(self) -> str:
        if not self.google_api_key:
            raise ConfigError("GOOGLE_API_KEY must be set in the environment for Places requests.")
        return self.google_api_key


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("%s=%r is not an integer; using %s", name, raw, default)
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("%s=%r is not a number; using %s", name, raw, default)
        return default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    database_url = os.getenv("DATABASE_URL", "")
    google_api_key = os.getenv("GOOGLE_API_KEY") or os.getenv("GOOGLE_MAPS_API_KEY", "")

    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")
    if not google_api_key:
        logger.warning("GOOGLE_API_KEY is not configured; Google Places requests will fail.")

    return Settings(
        database_url=database_url,
        google_api_key=google_api_key,
        batch_size=_int_env("IMPORT_BATCH_SIZE", 25),
        request_delay=_float_env("API_REQUEST_DELAY", 0.5),
        batch_sleep=_float_env("BATCH_SLEEP_SECONDS", 1.0),
        max_iterations=_int_env("MAX_BATCH_ITERATIONS", 100),
        nearby_radius=_int_env("NEARBY_RADIUS", 500),
        nearby_max_radius=_int_env("NEARBY_MAX_RADIUS", 10000),
        static_maps_dir=os.getenv("STATIC_MAPS_DIR", "public/maps/static"),
        streetview_dir=os.getenv("STREETVIEW_DIR", "public/streetview"),
        geocode_cache_dir=os.getenv("GEOCODE_CACHE_DIR", "cache/geocoding"),
        log_file=os.getenv("LOG_FILE") or None,
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging for a job run; adds a file handler when LOG_FILE is set."""
    settings = settings or get_settings()
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file, encoding="utf-8"))
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT, handlers=handlers)
