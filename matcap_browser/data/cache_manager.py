"""JSON-indexed disk cache for preview images with TTL expiration."""
import hashlib
import json
import logging
import os
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from matcap_browser.core.cache_index import (
    DEFAULT_EXPIRY_SECONDS,
    CacheEntry,
    CacheIndex,
    IndexParseError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheConfig:
    """Where the cache lives and how long entries are trusted."""

    cache_dir: Path
    expiry_seconds: int = DEFAULT_EXPIRY_SECONDS
    index_file_name: str = "cache_index.json"

    @classmethod
    def from_dict(cls, cfg: dict, base_dir: Optional[Path] = None) -> "CacheConfig":
        """Build from the `cache` section of settings.yaml.

        Args:
            cfg: Dict with keys `dir`, `expiry_days`, `index_file` (all optional).
            base_dir: Directory that relative cache paths are resolved against.
        """
        cache_dir = Path(cfg.get("dir", "data/cache"))
        if base_dir is not None and not cache_dir.is_absolute():
            cache_dir = base_dir / cache_dir
        return cls(
            cache_dir=cache_dir,
            expiry_seconds=int(cfg.get("expiry_days", 7)) * 24 * 3600,
            index_file_name=cfg.get("index_file", "cache_index.json"),
        )


@dataclass(frozen=True)
class CacheStatistics:
    """Read-only snapshot of the cache index."""

    total_entries: int = 0
    valid_entries: int = 0
    total_size: int = 0
    valid_size: int = 0
    last_update: int = 0

    @property
    def expired_entries(self) -> int:
        return self.total_entries - self.valid_entries


def cache_file_name_for(source_key: str) -> str:
    """Derive the on-disk file name for a source key.

    The name is `preview_<16 hex chars of SHA-256><original extension>`, so it
    is stable across processes and platforms.
    """
    digest = hashlib.sha256(source_key.encode("utf-8")).hexdigest()[:16]
    return f"preview_{digest}{Path(source_key).suffix}"


class CacheManager:
    """Manages cached preview files and the JSON index describing them.

    Disk errors never propagate out of this class: they are logged and the
    operation degrades to a cache miss or a no-op.
    """

    def __init__(self, config: CacheConfig, clock: Callable[[], float] = time.time):
        """
        Args:
            config: Cache location and expiry window.
            clock: Returns the current UTC time in epoch seconds.
        """
        self.config = config
        self._clock = clock
        self.index = CacheIndex()
        self._available = False

    @property
    def cache_dir(self) -> Path:
        return self.config.cache_dir

    @property
    def index_path(self) -> Path:
        return self.config.cache_dir / self.config.index_file_name

    @property
    def available(self) -> bool:
        """False when the cache directory could not be created."""
        return self._available

    def _now(self) -> int:
        return int(self._clock())

    def _path(self, entry: CacheEntry) -> Path:
        return self.cache_dir / entry.cache_file_name

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Create the cache directory, load the index and drop expired entries."""
        try:
            if not self.cache_dir.exists():
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                logger.info("Created preview cache directory: %s", self.cache_dir)
            self._available = True
        except OSError as e:
            logger.error("Cannot create cache directory %s: %s; using an in-memory index", self.cache_dir, e)
            self._available = False
            self.index = CacheIndex()
            return

        self.index = self._load_index()
        removed = self.index.remove_expired(self._now(), self.config.expiry_seconds)
        if removed:
            logger.info("Dropped %d expired cache entries on startup", removed)
        self.save_index()
        logger.info("Preview cache initialized. Cached items: %d", len(self.index))

    def _load_index(self) -> CacheIndex:
        if not self.index_path.exists():
            return CacheIndex()
        try:
            with open(self.index_path, encoding="utf-8") as f:
                data = json.load(f)
            return CacheIndex.from_dict(data)
        except (OSError, ValueError) as e:
            # json.JSONDecodeError and IndexParseError are both ValueErrors
            logger.warning("Failed to load cache index %s: %s. Creating new index.", self.index_path, e)
            return CacheIndex()

    def save_index(self) -> bool:
        """Persist the index atomically. Returns False if the write failed."""
        if not self._available:
            return False
        tmp_path = self.index_path.with_name(self.index_path.name + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(self.index.to_dict(), f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.index_path)
            return True
        except OSError as e:
            logger.error("Failed to save cache index: %s", e)
            tmp_path.unlink(missing_ok=True)
            return False

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def is_valid(self, entry: Optional[CacheEntry]) -> bool:
        """Return True iff the entry is flagged valid, its file exists and it has not expired."""
        if entry is None or not entry.valid:
            return False
        if not self._path(entry).is_file():
            return False
        return not entry.is_expired(self._now(), self.config.expiry_seconds)

    def lookup(self, source_key: str) -> Optional[CacheEntry]:
        """Return the valid entry for `source_key`, or None on a miss."""
        entry = self.index.get(source_key)
        return entry if self.is_valid(entry) else None

    def load_bytes(self, source_key: str) -> Optional[bytes]:
        """Read the cached payload for `source_key`. Returns None on miss or read error."""
        entry = self.lookup(source_key)
        if entry is None:
            return None
        try:
            return self._path(entry).read_bytes()
        except OSError as e:
            logger.warning("Failed to read cached preview for %s: %s", source_key, e)
            return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def put(self, source_key: str, payload: bytes) -> Optional[CacheEntry]:
        """Write `payload` for `source_key` and record it in the index.

        Returns:
            The upserted entry, or None if the payload could not be written.
        """
        cache_file_name = cache_file_name_for(source_key)
        try:
            (self.cache_dir / cache_file_name).write_bytes(payload)
        except OSError as e:
            logger.error("Failed to cache preview for %s: %s", source_key, e)
            return None

        entry = self.index.upsert(source_key, cache_file_name, len(payload), self._now())
        self.save_index()
        logger.debug("Cached preview for %s (%d bytes)", source_key, len(payload))
        return entry

    def invalidate(self, source_key: str) -> bool:
        """Forget the entry for `source_key`. The payload file is left on disk."""
        removed = self.index.remove(source_key)
        if removed:
            self.save_index()
        return removed

    def sweep_expired(self) -> int:
        """Remove every expired entry. Returns the number of entries removed."""
        removed = self.index.remove_expired(self._now(), self.config.expiry_seconds)
        if removed:
            self.save_index()
        return removed

    def clear_all(self) -> bool:
        """Delete the whole cache directory and start over with an empty index.

        Returns:
            False if the directory could not be removed or recreated.
        """
        self.index = CacheIndex()
        try:
            if self.cache_dir.exists():
                shutil.rmtree(self.cache_dir)
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            self._available = True
        except OSError as e:
            logger.error("Failed to clear cache: %s", e)
            return False
        self.save_index()
        logger.info("Preview cache cleared")
        return True

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def statistics(self) -> CacheStatistics:
        valid = [e for e in self.index.entries if self.is_valid(e)]
        return CacheStatistics(
            total_entries=len(self.index.entries),
            valid_entries=len(valid),
            total_size=sum(e.size_bytes for e in self.index.entries),
            valid_size=sum(e.size_bytes for e in valid),
            last_update=self.index.last_update,
        )
