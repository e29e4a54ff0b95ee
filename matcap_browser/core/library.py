"""MatCap library state and the step sequences that load and download it.

All network work is submitted to an executor and awaited by yielding the
returned future to the TaskRunner, so library state is only ever mutated
from inside ``tick()`` or one of the public entry points below.
"""
from __future__ import annotations

import enum
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from PIL import Image

from matcap_browser.core.task_runner import TaskHandle, TaskRunner
from matcap_browser.data.cache_manager import CacheManager, CacheStatistics
from matcap_browser.data.download_manager import DownloadManager
from matcap_browser.data.github_client import FetchErrorKind, FetchResult, GitHubClient
from matcap_browser.utils.images import decode_image
from matcap_browser.utils.validators import alternative_file_names, clean_file_name

logger = logging.getLogger(__name__)

# The preview directory alone is normally enough; the others are fallbacks.
API_DIRECTORIES = ("preview", "256", "512", "1024")
NETWORK_ERROR_MESSAGE = (
    "Network error: Unable to connect to GitHub. "
    "Check your connection and press Refresh to retry."
)


class SortMode(enum.Enum):
    NAME = "Name"
    DOWNLOADED = "Downloaded"
    SIZE = "Size"


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass
class MatcapItem:
    """One MatCap texture available in the remote repository."""

    file_name: str
    is_downloaded: bool = False
    is_downloading: bool = False
    preview: Optional[Image.Image] = field(default=None, repr=False)
    name: str = field(default="", init=False)

    def __post_init__(self) -> None:
        self.name = Path(self.file_name).stem


# ---------------------------------------------------------------------------
# MatcapLibrary
# ---------------------------------------------------------------------------

class MatcapLibrary:
    """Browsable list of MatCaps backed by GitHub, the preview cache and the download store."""

    def __init__(
        self,
        cache: CacheManager,
        github: GitHubClient,
        downloads: DownloadManager,
        runner: Optional[TaskRunner] = None,
        executor=None,
        resolution: int = 1024,
        max_workers: int = 4,
    ) -> None:
        """
        Args:
            cache: Initialized preview cache.
            github: Remote source client.
            downloads: Where full-resolution textures are written.
            runner: Task runner to schedule on. A private one is created if None.
            executor: Object with ``submit(fn, *args)`` returning a future.
                      A ThreadPoolExecutor is created (and shut down) if None.
            resolution: Full-resolution directory to download from.
            max_workers: Worker count for the executor created when none is given.
        """
        self.cache = cache
        self.github = github
        self.downloads = downloads
        self.runner = runner or TaskRunner()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="matcap-fetch")
        self.resolution = resolution

        self.items: list[MatcapItem] = []
        self.search = ""
        self.sort_mode = SortMode.NAME
        self.ascending = True
        self.selected: Optional[str] = None
        self.status_message = ""
        self.connection_report = ""
        self.is_loading = False
        self.revision = 0

        self._load_handle: Optional[TaskHandle] = None
        self._preview_handles: list[TaskHandle] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _touch(self) -> None:
        self.revision += 1

    def _set_status(self, message: str) -> None:
        self.status_message = message
        self._touch()

    def _submit(self, fn, *args):
        return self._executor.submit(fn, *args)

    def _find(self, file_name: Optional[str]) -> Optional[MatcapItem]:
        if not file_name:
            return None
        for item in self.items:
            if item.file_name == file_name:
                return item
        return None

    def _preview_size(self, item: MatcapItem) -> int:
        entry = self.cache.index.get(item.file_name)
        return entry.size_bytes if entry is not None else 0

    # ------------------------------------------------------------------
    # Read-side helpers
    # ------------------------------------------------------------------

    @property
    def loaded_preview_count(self) -> int:
        return sum(1 for h in self._preview_handles if h.done)

    @property
    def downloaded_count(self) -> int:
        return sum(1 for i in self.items if i.is_downloaded)

    @property
    def downloading_count(self) -> int:
        return sum(1 for i in self.items if i.is_downloading)

    def get_item(self, file_name: str) -> Optional[MatcapItem]:
        with self._lock:
            return self._find(file_name)

    def visible_items(self) -> list[MatcapItem]:
        """Items matching the search filter, in the current sort order."""
        with self._lock:
            needle = self.search.strip().lower()
            items = [i for i in self.items if needle in i.name.lower()] if needle else list(self.items)
            reverse = not self.ascending
            if self.sort_mode is SortMode.DOWNLOADED:
                items.sort(key=lambda i: (i.is_downloaded, i.name.lower()), reverse=reverse)
            elif self.sort_mode is SortMode.SIZE:
                items.sort(key=lambda i: (self._preview_size(i), i.name.lower()), reverse=reverse)
            else:
                items.sort(key=lambda i: i.name.lower(), reverse=reverse)
            return items

    # ------------------------------------------------------------------
    # UI state
    # ------------------------------------------------------------------

    def set_search(self, text: str) -> None:
        with self._lock:
            self.search = text or ""
            self._touch()

    def set_sort(self, mode: SortMode, ascending: bool = True) -> None:
        with self._lock:
            self.sort_mode = mode
            self.ascending = ascending
            self._touch()

    def select(self, file_name: Optional[str]) -> None:
        with self._lock:
            self.selected = file_name if self._find(file_name) else None
            self._touch()

    # ------------------------------------------------------------------
    # Host loop
    # ------------------------------------------------------------------

    def tick(self) -> None:
        """Advance all pending tasks. Called once per host timer tick."""
        with self._lock:
            self.runner.tick()

    def shutdown(self) -> None:
        with self._lock:
            self.runner.cancel_all()
            self._preview_handles = []
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    # List loading
    # ------------------------------------------------------------------

    def load_list(self) -> TaskHandle:
        """(Re)load the MatCap list, abandoning any load already in progress."""
        with self._lock:
            self.runner.cancel(self._load_handle)
            for handle in self._preview_handles:
                self.runner.cancel(handle)
            self._preview_handles = []
            self.items = []
            self.selected = None
            self.is_loading = True
            self._set_status("Loading matcap list...")
            self._load_handle = self.runner.start(self._load_list_steps(), name="load-list")
            return self._load_handle

    def _load_list_steps(self):
        names = yield self._list_from_api()
        if not names:
            names = yield self._list_from_page()
        if not names:
            self.is_loading = False
            self._set_status(NETWORK_ERROR_MESSAGE)
            return []

        self.items = [
            MatcapItem(name, is_downloaded=self.downloads.is_downloaded(name)) for name in names
        ]
        self._set_status(f"Loading {len(self.items)} matcaps...")
        for item in self.items:
            handle = self.runner.start(self._load_preview_steps(item), name=f"preview:{item.file_name}")
            self._preview_handles.append(handle)

        while not all(h.done for h in self._preview_handles):
            yield

        self.is_loading = False
        self._set_status(f"Loaded {len(self.items)} matcaps")
        return names

    def _list_from_api(self):
        found: dict[str, None] = {}
        for directory in API_DIRECTORIES:
            result = yield self._submit(self.github.list_directory, directory)
            if result.success:
                found.update(dict.fromkeys(result.data))
                if directory == "preview" and found:
                    break
            yield
        if not found:
            logger.warning("GitHub API listing returned no files")
        return list(found)

    def _list_from_page(self):
        result = yield self._submit(self.github.scrape_page)
        if not result.success:
            logger.error("Page scraping failed: %s", result.error)
            return []
        return result.data

    def _load_preview_steps(self, item: MatcapItem):
        data = self.cache.load_bytes(item.file_name)
        if data is not None:
            image = decode_image(data)
            if image is not None:
                item.preview = image
                self._touch()
                return True
            logger.warning("Cached preview for %s is corrupt; refetching", item.file_name)
            self.cache.invalidate(item.file_name)

        result = yield self._submit(self.github.fetch_preview, item.file_name)
        if not result.success:
            logger.warning("Failed to load preview for %s: %s", item.name, result.error)
            return False
        image = decode_image(result.data)
        if image is None:
            logger.warning("Preview for %s is not a valid image", item.name)
            return False
        item.preview = image
        self.cache.put(item.file_name, result.data)
        self._touch()
        return True

    # ------------------------------------------------------------------
    # Downloads
    # ------------------------------------------------------------------

    def download(self, file_name: Optional[str] = None) -> Optional[TaskHandle]:
        """Download one MatCap at full resolution (the selected one if no name is given)."""
        with self._lock:
            item = self._find(file_name or self.selected)
            if item is None:
                self._set_status("Select a matcap first.")
                return None
            if item.is_downloading:
                return None
            return self.runner.start(self._download_steps(item), name=f"download:{item.file_name}")

    def download_all(self) -> TaskHandle:
        """Download every MatCap that is not on disk yet, one after another."""
        with self._lock:
            return self.runner.start(self._download_all_steps(), name="download-all")

    def _download_steps(self, item: MatcapItem):
        item.is_downloading = True
        self._set_status(f"Downloading {item.name}...")
        try:
            result = yield self._fetch_full_resolution(item.file_name)
            if not result.success:
                logger.error("Download error for %s: %s", item.file_name, result.error)
                self._set_status(f"Failed to download {item.name}: {result.error}")
                return False
            if self.downloads.save(result.data, item.file_name) is None:
                self._set_status(f"Failed to save {item.name}")
                return False
            item.is_downloaded = True
            self._set_status(f"Downloaded {item.name} ({self.resolution}px)")
            return True
        finally:
            item.is_downloading = False
            self._touch()

    def _fetch_full_resolution(self, file_name: str):
        first = yield self._submit(self.github.fetch_matcap, file_name, self.resolution)
        if first.success:
            return first
        for candidate in alternative_file_names(clean_file_name(file_name))[1:]:
            result = yield self._submit(self.github.fetch_matcap, candidate, self.resolution)
            if result.success:
                return result
            yield
        return FetchResult.fail(first.kind or FetchErrorKind.TRANSIENT, "All download attempts failed")

    def _download_all_steps(self):
        pending = [i for i in self.items if not i.is_downloaded and not i.is_downloading]
        if not pending:
            self._set_status("All matcaps are already downloaded.")
            return 0
        succeeded = 0
        for index, item in enumerate(pending, start=1):
            self._set_status(f"Downloading {index}/{len(pending)}: {item.name}")
            if (yield self._download_steps(item)):
                succeeded += 1
        self._set_status(f"Downloaded {succeeded}/{len(pending)} matcaps")
        return succeeded

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def test_connection(self) -> TaskHandle:
        with self._lock:
            self._set_status("Testing GitHub connection...")
            return self.runner.start(self._test_connection_steps(), name="test-connection")

    def _test_connection_steps(self):
        report = yield self._submit(self.github.test_connection)
        logger.info("%s", report)
        self.connection_report = report
        self._set_status("Connection test completed.")
        return report

    def clear_cache(self) -> bool:
        """Wipe the preview cache and drop previews held in memory."""
        with self._lock:
            ok = self.cache.clear_all()
            for item in self.items:
                item.preview = None
            self._set_status("Cache cleared successfully" if ok else "Failed to clear cache")
            return ok

    def cache_info(self) -> tuple[CacheStatistics, Path, int]:
        """Statistics, location and expiry window of the preview cache."""
        with self._lock:
            return self.cache.statistics(), self.cache.cache_dir, self.cache.config.expiry_seconds

    def clean_expired(self) -> int:
        with self._lock:
            removed = self.cache.sweep_expired()
            self._set_status(
                f"Removed {removed} expired cache entries. Remaining entries: {len(self.cache.index)}"
            )
            return removed
