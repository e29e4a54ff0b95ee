"""Shared pytest fixtures."""
import io
from concurrent.futures import Future

import pytest
from PIL import Image

from matcap_browser.data.cache_manager import CacheConfig, CacheManager
from matcap_browser.data.github_client import FetchErrorKind, FetchResult

START_TIME = 1_700_000_000


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, now: int = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


class FakeOperation:
    """External operation that reports done only when told to."""

    def __init__(self, value=None) -> None:
        self.value = value
        self.error = None
        self._done = False

    def complete(self, value=None, error=None) -> None:
        if value is not None:
            self.value = value
        self.error = error
        self._done = True

    def done(self) -> bool:
        return self._done

    def result(self):
        if self.error is not None:
            raise self.error
        return self.value


class ImmediateExecutor:
    """Runs submitted calls synchronously and returns completed futures."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def submit(self, fn, *args):
        self.calls.append((getattr(fn, "__name__", repr(fn)),) + args)
        future: Future = Future()
        try:
            future.set_result(fn(*args))
        except Exception as e:
            future.set_exception(e)
        return future


class FakeGitHub:
    """In-memory stand-in for GitHubClient."""

    def __init__(self, listings=None, page=None, previews=None, matcaps=None) -> None:
        self.listings = listings or {}
        self.page = page
        self.previews = previews or {}
        self.matcaps = matcaps or {}
        self.preview_requests: list[str] = []
        self.matcap_requests: list[tuple[str, int]] = []

    def list_directory(self, directory: str) -> FetchResult:
        if directory in self.listings:
            return FetchResult.ok(list(self.listings[directory]))
        return FetchResult.fail(FetchErrorKind.NOT_FOUND, f"no listing for {directory}")

    def scrape_page(self) -> FetchResult:
        if self.page:
            return FetchResult.ok(list(self.page))
        return FetchResult.fail(FetchErrorKind.TRANSIENT, "page unavailable")

    def fetch_preview(self, file_name: str) -> FetchResult:
        self.preview_requests.append(file_name)
        if file_name in self.previews:
            return FetchResult.ok(self.previews[file_name])
        return FetchResult.fail(FetchErrorKind.NOT_FOUND, f"missing preview {file_name}")

    def fetch_matcap(self, file_name: str, resolution: int) -> FetchResult:
        self.matcap_requests.append((file_name, resolution))
        if file_name in self.matcaps:
            return FetchResult.ok(self.matcaps[file_name])
        return FetchResult.fail(FetchErrorKind.NOT_FOUND, f"missing matcap {file_name}")

    def test_connection(self) -> str:
        return "=== GitHub Connection Test ===\nfake\n=== Test Complete ==="


def _png(color=(200, 120, 40), size: int = 8) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (size, size), color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_config(tmp_path) -> CacheConfig:
    return CacheConfig(cache_dir=tmp_path / "cache")


@pytest.fixture
def cache(cache_config, clock) -> CacheManager:
    """Initialized CacheManager in a temporary directory."""
    manager = CacheManager(cache_config, clock=clock)
    manager.initialize()
    return manager


@pytest.fixture
def make_png():
    """Factory for small valid PNG payloads."""
    return _png


@pytest.fixture
def png_bytes() -> bytes:
    return _png()


@pytest.fixture
def executor() -> ImmediateExecutor:
    return ImmediateExecutor()


@pytest.fixture
def fake_operation():
    return FakeOperation


@pytest.fixture
def fake_github_factory():
    return FakeGitHub
