"""
Collection Index Integration - Index Cache

SRP: Only persistence of the collection index cache entry.
No HTTP, no freshness policy. Just read/write of one JSON file.

Responsibilities:
- Load/save ~/.dollhouse/cache/collection-index.json
- Checksum the key index fields and reject entries that no longer match
- Atomic writes (temp file + rename)
- Never raise: a broken cache file is a cache miss
"""
from __future__ import annotations

import base64
import json
import logging
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

CHECKSUM_LENGTH = 8
JSON_INDENT = 2


def compute_checksum(data: Dict[str, Any]) -> str:
    """
    Short corruption detector over {version, generated, total_elements}.

    Not a security measure: a collision only costs an extra fetch.
    """
    key_fields = {
        "version": data.get("version"),
        "generated": data.get("generated"),
        "total_elements": data.get("total_elements"),
    }
    encoded = base64.b64encode(json.dumps(key_fields, separators=(",", ":")).encode("utf-8"))
    return format(zlib.crc32(encoded), "08x")[:CHECKSUM_LENGTH]


@dataclass
class CacheEntry:
    """
    A cached index plus the HTTP validators from the fetch that produced it.

    `timestamp` is epoch milliseconds of the last successful round trip
    (200 or 304).
    """
    data: Dict[str, Any]
    timestamp: float
    version: str
    checksum: str
    etag: Optional[str] = None
    last_modified: Optional[str] = None

    @classmethod
    def create(
        cls,
        data: Dict[str, Any],
        timestamp: float,
        etag: Optional[str] = None,
        last_modified: Optional[str] = None,
    ) -> "CacheEntry":
        return cls(
            data=data,
            timestamp=timestamp,
            version=data.get("version", ""),
            checksum=compute_checksum(data),
            etag=etag,
            last_modified=last_modified,
        )

    @property
    def total_elements(self) -> Optional[int]:
        return self.data.get("total_elements")

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "data": self.data,
            "timestamp": self.timestamp,
            "version": self.version,
            "checksum": self.checksum,
        }
        # Unset validators are omitted, not written as null
        if self.etag is not None:
            payload["etag"] = self.etag
        if self.last_modified is not None:
            payload["lastModified"] = self.last_modified
        return payload


class IndexCacheStore:
    """
    Persists a single CacheEntry as pretty-printed JSON.

    File structure:
    {
        "data": {...collection index...},
        "timestamp": 1755864000000,
        "etag": "\"etag-value\"",
        "lastModified": "Fri, 22 Aug 2025 12:00:00 GMT",
        "version": "1.2.3",
        "checksum": "1a2b3c4d"
    }
    """

    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[CacheEntry]:
        """Return the cached entry, or None if missing, corrupt or tampered."""
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.debug("Failed to load cache from disk path=%s error=%s", self._path, e)
            return None

        if not isinstance(raw, dict) or not isinstance(raw.get("data"), dict):
            logger.debug("Invalid cache structure, ignoring")
            return None
        if not raw.get("timestamp") or not raw.get("version"):
            logger.debug("Invalid cache structure, ignoring")
            return None

        stored_checksum = raw.get("checksum")
        if stored_checksum and stored_checksum != compute_checksum(raw["data"]):
            logger.debug("Cache checksum mismatch, ignoring cached data")
            return None

        try:
            timestamp = float(raw["timestamp"])
        except (TypeError, ValueError):
            logger.debug("Invalid cache timestamp, ignoring")
            return None

        return CacheEntry(
            data=raw["data"],
            timestamp=timestamp,
            version=str(raw["version"]),
            checksum=stored_checksum or compute_checksum(raw["data"]),
            etag=raw.get("etag"),
            last_modified=raw.get("lastModified"),
        )

    def save(self, entry: CacheEntry) -> bool:
        """
        Save the entry atomically. Returns False (and logs) on failure.

        Persistence is best-effort: the in-memory entry stays authoritative.
        """
        tmp = self._path.with_suffix(".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(
                json.dumps(entry.to_dict(), indent=JSON_INDENT, ensure_ascii=False),
                encoding="utf-8",
            )
            tmp.replace(self._path)
        except (OSError, TypeError, ValueError) as e:
            logger.debug("Failed to save cache to disk path=%s error=%s", self._path, e)
            return False

        logger.debug("Collection index cache saved to disk path=%s", self._path)
        return True

    def delete(self) -> None:
        """Remove the cache file. Already absent is fine."""
        try:
            self._path.unlink()
            logger.debug("Collection index cache file deleted")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug("Failed to delete cache file path=%s error=%s", self._path, e)
