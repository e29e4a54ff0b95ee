"""Preview cache index model and its JSON schema."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_SECONDS = 7 * 24 * 3600


class IndexParseError(ValueError):
    """Raised when a persisted cache index does not match the expected shape."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass
class CacheEntry:
    """One cached preview file."""

    source_key: str
    cache_file_name: str
    cached_at: int
    size_bytes: int
    valid: bool = True

    def is_expired(self, now: int, expiry_seconds: int = DEFAULT_EXPIRY_SECONDS) -> bool:
        """Return True once the entry is `expiry_seconds` old or older."""
        return now - self.cached_at >= expiry_seconds

    def to_dict(self) -> dict:
        return {
            "fileName": self.source_key,
            "cacheFileName": self.cache_file_name,
            "cacheTime": self.cached_at,
            "fileSize": self.size_bytes,
            "isValid": self.valid,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CacheEntry":
        if not isinstance(data, dict):
            raise IndexParseError(f"cache entry must be an object, got {type(data).__name__}")
        try:
            source_key = data["fileName"]
            cache_file_name = data["cacheFileName"]
            cached_at = data["cacheTime"]
            size_bytes = data["fileSize"]
            valid = data.get("isValid", True)
        except KeyError as e:
            raise IndexParseError(f"cache entry missing field {e}") from e
        if not isinstance(source_key, str) or not source_key:
            raise IndexParseError("cache entry fileName must be a non-empty string")
        if not isinstance(cache_file_name, str) or not cache_file_name:
            raise IndexParseError("cache entry cacheFileName must be a non-empty string")
        # bool is an int subclass; reject it for the numeric fields
        for name, value in (("cacheTime", cached_at), ("fileSize", size_bytes)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise IndexParseError(f"cache entry {name} must be an integer")
        if not isinstance(valid, bool):
            raise IndexParseError("cache entry isValid must be a boolean")
        return cls(
            source_key=source_key,
            cache_file_name=cache_file_name,
            cached_at=cached_at,
            size_bytes=size_bytes,
            valid=valid,
        )


@dataclass
class CacheIndex:
    """In-memory table of cache entries keyed by source key."""

    entries: list[CacheEntry] = field(default_factory=list)
    last_update: int = 0

    def get(self, source_key: str) -> Optional[CacheEntry]:
        """Exact-match lookup. Returns None if absent."""
        for entry in self.entries:
            if entry.source_key == source_key:
                return entry
        return None

    def upsert(
        self,
        source_key: str,
        cache_file_name: str,
        size_bytes: int,
        now: int,
    ) -> CacheEntry:
        """Create the entry for `source_key` or refresh the existing one."""
        entry = self.get(source_key)
        if entry is None:
            entry = CacheEntry(
                source_key=source_key,
                cache_file_name=cache_file_name,
                cached_at=now,
                size_bytes=size_bytes,
            )
            self.entries.append(entry)
        else:
            entry.cache_file_name = cache_file_name
            entry.cached_at = now
            entry.size_bytes = size_bytes
            entry.valid = True
        self.last_update = now
        return entry

    def remove(self, source_key: str) -> bool:
        """Remove the entry for `source_key`. Returns True if one was removed."""
        before = len(self.entries)
        self.entries = [e for e in self.entries if e.source_key != source_key]
        return len(self.entries) != before

    def remove_expired(self, now: int, expiry_seconds: int = DEFAULT_EXPIRY_SECONDS) -> int:
        """Drop every expired entry. Returns the number removed."""
        before = len(self.entries)
        self.entries = [e for e in self.entries if not e.is_expired(now, expiry_seconds)]
        return before - len(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "lastUpdate": self.last_update,
        }

    @classmethod
    def from_dict(cls, data: object) -> "CacheIndex":
        """Build an index from decoded JSON.

        Raises:
            IndexParseError: If `data` does not follow the index schema.
        """
        if not isinstance(data, dict):
            raise IndexParseError(f"cache index must be an object, got {type(data).__name__}")
        raw_entries = data.get("entries", [])
        if not isinstance(raw_entries, list):
            raise IndexParseError("cache index entries must be a list")
        last_update = data.get("lastUpdate", 0)
        if isinstance(last_update, bool) or not isinstance(last_update, int):
            raise IndexParseError("cache index lastUpdate must be an integer")

        by_key: dict[str, CacheEntry] = {}
        for raw in raw_entries:
            entry = CacheEntry.from_dict(raw)
            if entry.source_key in by_key:
                logger.debug("Duplicate cache entry for %s, keeping the later one", entry.source_key)
                del by_key[entry.source_key]
            by_key[entry.source_key] = entry
        return cls(entries=list(by_key.values()), last_update=last_update)
