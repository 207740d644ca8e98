"""
Configuration for shelftag.

Provides:
- Settings loaded from environment (and `.env` files)
- Catalog credentials loaded from a JSON config file or environment
"""

import json
import os
from dataclasses import dataclass, replace
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from loguru import logger

from shelftag.errors import ConfigError


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


# =============================================================================
# Settings
# =============================================================================

@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Credentials
    libby_config_path: str = "libby_config.json"
    card_id: Optional[str] = None
    bearer_token: Optional[str] = None

    # Format cache
    cache_path: str = ".shelftag/format_cache.json"
    cache_strict: bool = True

    # HTTP
    request_timeout: float = 30.0
    max_retries: int = 3

    # Concurrency limits per phase
    search_concurrency: int = 25
    format_concurrency: int = 10

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        load_dotenv()
        return cls(
            libby_config_path=os.getenv("SHELFTAG_LIBBY_CONFIG", cls.libby_config_path),
            card_id=os.getenv("LIBBY_CARD_ID"),
            bearer_token=os.getenv("LIBBY_BEARER_TOKEN"),
            cache_path=os.getenv("SHELFTAG_FORMAT_CACHE", cls.cache_path),
            cache_strict=_env_bool("SHELFTAG_CACHE_STRICT", cls.cache_strict),
            request_timeout=float(os.getenv("SHELFTAG_TIMEOUT", cls.request_timeout)),
            max_retries=int(os.getenv("SHELFTAG_MAX_RETRIES", cls.max_retries)),
            search_concurrency=int(os.getenv("SHELFTAG_SEARCH_CONCURRENCY", cls.search_concurrency)),
            format_concurrency=int(os.getenv("SHELFTAG_FORMAT_CONCURRENCY", cls.format_concurrency)),
            log_level=os.getenv("SHELFTAG_LOG_LEVEL", cls.log_level),
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings.from_env()


# =============================================================================
# Credentials
# =============================================================================

@dataclass(frozen=True)
class LibbyCredentials:
    """
    Identity used for every catalog call.

    `library_key` is resolved once from the card sync endpoint; use
    `with_library_key` to derive the connected credentials.
    """

    card_id: str
    bearer_token: str
    library_key: Optional[str] = None

    def with_library_key(self, library_key: str) -> "LibbyCredentials":
        return replace(self, library_key=library_key)

    def __repr__(self) -> str:
        return f"LibbyCredentials(card_id={self.card_id!r}, library_key={self.library_key!r})"


def load_credentials(settings: Settings, card_id: Optional[str] = None) -> LibbyCredentials:
    """
    Resolve catalog credentials.

    Explicit and environment values win over the JSON config file, which
    holds `{"card_id": ..., "bearer_token": ...}`.

    Raises:
        ConfigError: If the config file is unreadable or a value is missing.
    """
    file_values: dict = {}
    config_path = Path(settings.libby_config_path)

    if config_path.exists():
        try:
            file_values = json.loads(config_path.read_text())
        except (OSError, ValueError) as e:
            raise ConfigError(f"Unable to read catalog config {config_path}", detail=str(e)) from e
        if not isinstance(file_values, dict):
            raise ConfigError(f"Catalog config {config_path} must be a JSON object")
        logger.debug(f"Loaded catalog config from {config_path}")

    resolved_card = card_id or settings.card_id or file_values.get("card_id")
    token = settings.bearer_token or file_values.get("bearer_token")

    if not resolved_card:
        raise ConfigError("No library card id configured", detail="set LIBBY_CARD_ID or pass --card-id")
    if not token:
        raise ConfigError("No bearer token configured", detail=f"set LIBBY_BEARER_TOKEN or add it to {config_path}")

    return LibbyCredentials(card_id=str(resolved_card), bearer_token=str(token))
