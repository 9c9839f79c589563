from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()  # Load .env file if present

logger = logging.getLogger(__name__)

DEFAULT_INDEX_URL = "https://raw.githubusercontent.com/DollhouseMCP/collection/main/public/collection-index.json"
DEFAULT_CACHE_DIR = Path.home() / ".dollhouse" / "cache"

DEFAULT_TTL_MS = 60 * 60 * 1000  # 1 hour
DEFAULT_FETCH_TIMEOUT_MS = 5000
DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_RETRY_DELAY_MS = 1000
DEFAULT_MAX_RETRY_DELAY_MS = 30000

FETCH_TIMEOUT_ENV = "COLLECTION_FETCH_TIMEOUT"


def _get(key: str, default: str = "") -> str:
    return os.getenv(key, default)


def _get_int(key: str, default: int = 0) -> int:
    raw = _get(key, str(default)).strip()
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    APP_NAME: str = _get("APP_NAME", "DollhouseMCP")
    APP_ENV: str = _get("APP_ENV", "dev")

    # Collection index cache
    COLLECTION_INDEX_URL: str = _get("COLLECTION_INDEX_URL", DEFAULT_INDEX_URL)
    COLLECTION_CACHE_DIR: str = _get("COLLECTION_CACHE_DIR", "")
    COLLECTION_TTL_MS: int = _get_int("COLLECTION_TTL_MS", DEFAULT_TTL_MS)
    COLLECTION_FETCH_TIMEOUT_MS: int = _get_int("COLLECTION_FETCH_TIMEOUT_MS", DEFAULT_FETCH_TIMEOUT_MS)
    COLLECTION_MAX_RETRIES: int = _get_int("COLLECTION_MAX_RETRIES", DEFAULT_MAX_RETRIES)
    COLLECTION_BASE_RETRY_DELAY_MS: int = _get_int("COLLECTION_BASE_RETRY_DELAY_MS", DEFAULT_BASE_RETRY_DELAY_MS)
    COLLECTION_MAX_RETRY_DELAY_MS: int = _get_int("COLLECTION_MAX_RETRY_DELAY_MS", DEFAULT_MAX_RETRY_DELAY_MS)


settings = Settings()


def resolve_fetch_timeout(config_value: Optional[int] = None) -> int:
    """
    Resolve the fetch timeout in milliseconds.

    COLLECTION_FETCH_TIMEOUT wins when it holds a positive integer. Invalid
    values are ignored with a warning and the config value (or the default)
    is used instead.
    """
    raw = os.getenv(FETCH_TIMEOUT_ENV)
    if raw:
        try:
            parsed = int(raw.strip())
        except ValueError:
            parsed = 0
        if parsed > 0:
            logger.debug("Using %s from environment: %sms", FETCH_TIMEOUT_ENV, parsed)
            return parsed
        logger.warning("Invalid %s value: %s, using default", FETCH_TIMEOUT_ENV, raw)

    return config_value or DEFAULT_FETCH_TIMEOUT_MS


@dataclass(frozen=True)
class CollectionIndexConfig:
    """
    Explicit configuration for one CollectionIndexManager.

    Built once at startup (see `from_settings`) and passed by reference, so
    tests can run several independent managers side by side.
    """

    ttl_ms: int = DEFAULT_TTL_MS
    fetch_timeout_ms: int = DEFAULT_FETCH_TIMEOUT_MS
    max_retries: int = DEFAULT_MAX_RETRIES
    base_retry_delay_ms: int = DEFAULT_BASE_RETRY_DELAY_MS
    max_retry_delay_ms: int = DEFAULT_MAX_RETRY_DELAY_MS
    cache_dir: Path = DEFAULT_CACHE_DIR
    index_url: str = DEFAULT_INDEX_URL

    def __post_init__(self) -> None:
        # Zero or missing values fall back to defaults.
        object.__setattr__(self, "ttl_ms", self.ttl_ms or DEFAULT_TTL_MS)
        object.__setattr__(self, "max_retries", self.max_retries or DEFAULT_MAX_RETRIES)
        object.__setattr__(self, "base_retry_delay_ms", self.base_retry_delay_ms or DEFAULT_BASE_RETRY_DELAY_MS)
        object.__setattr__(self, "max_retry_delay_ms", self.max_retry_delay_ms or DEFAULT_MAX_RETRY_DELAY_MS)
        object.__setattr__(self, "cache_dir", Path(self.cache_dir or DEFAULT_CACHE_DIR))
        object.__setattr__(self, "index_url", self.index_url or DEFAULT_INDEX_URL)

    @property
    def cache_file(self) -> Path:
        return self.cache_dir / "collection-index.json"

    @classmethod
    def from_settings(cls, source: Settings = settings) -> "CollectionIndexConfig":
        return cls(
            ttl_ms=source.COLLECTION_TTL_MS,
            fetch_timeout_ms=source.COLLECTION_FETCH_TIMEOUT_MS,
            max_retries=source.COLLECTION_MAX_RETRIES,
            base_retry_delay_ms=source.COLLECTION_BASE_RETRY_DELAY_MS,
            max_retry_delay_ms=source.COLLECTION_MAX_RETRY_DELAY_MS,
            cache_dir=Path(source.COLLECTION_CACHE_DIR).expanduser() if source.COLLECTION_CACHE_DIR else DEFAULT_CACHE_DIR,
            index_url=source.COLLECTION_INDEX_URL,
        )
