"""GitHub client for the nidorx/matcaps repository.

Every public method returns a FetchResult instead of raising, so callers can
decide whether to retry, fall back or report the failure.
"""
import enum
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

import requests

from matcap_browser.utils.validators import clean_file_name, is_valid_matcap_file_name

logger = logging.getLogger(__name__)

API_BASE = "https://api.github.com/repos/nidorx/matcaps/contents/"
RAW_BASE = "https://raw.githubusercontent.com/nidorx/matcaps/master/"
PAGE_URL = "https://github.com/nidorx/matcaps/tree/master/preview"
DEFAULT_USER_AGENT = "MatcapBrowser/1.0"

# Tried in order until one yields more than _PAGE_MIN_MATCHES names
_PAGE_PATTERNS = (
    r"([0-9A-F]{8}_[0-9A-F]{8}_[0-9A-F]{8}_[0-9A-F]{8}\.png)",
    r"([0-9A-F]{6}_[0-9A-F]{6}_[0-9A-F]{6}_[0-9A-F]{6}\.png)",
    r"([0-9A-Fa-f]+_[0-9A-Fa-f]+_[0-9A-Fa-f]+_[0-9A-Fa-f]+\.png)",
    r"(\w+\.png)",
)
_PAGE_MIN_MATCHES = 10


class FetchErrorKind(enum.Enum):
    TRANSIENT = "transient"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    INVALID = "invalid"


@dataclass
class FetchResult:
    """Outcome of one remote call."""

    success: bool
    data: Any = None
    error: str = ""
    kind: Optional[FetchErrorKind] = None

    @classmethod
    def ok(cls, data: Any) -> "FetchResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, kind: FetchErrorKind, error: str) -> "FetchResult":
        return cls(success=False, error=error, kind=kind)


@dataclass(frozen=True)
class Timeouts:
    """Per-operation HTTP timeouts in seconds."""

    listing: float = 15.0
    download: float = 30.0
    connection_test: float = 10.0


class GitHubClient:
    """Lists and downloads MatCap textures from GitHub."""

    def __init__(self, timeouts: Optional[Timeouts] = None, user_agent: str = DEFAULT_USER_AGENT):
        """
        Args:
            timeouts: HTTP timeouts. Defaults to Timeouts().
            user_agent: Sent with every request; GitHub rejects requests without one.
        """
        self.timeouts = timeouts or Timeouts()
        self.user_agent = user_agent

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get(self, url: str, timeout: float) -> FetchResult:
        """GET `url` and wrap the response (or failure) in a FetchResult."""
        try:
            resp = requests.get(url, headers={"User-Agent": self.user_agent}, timeout=timeout)
        except requests.exceptions.Timeout:
            return FetchResult.fail(FetchErrorKind.TIMEOUT, f"Request timed out after {timeout:g}s: {url}")
        except requests.exceptions.RequestException as e:
            return FetchResult.fail(FetchErrorKind.TRANSIENT, f"Request failed: {e}")
        if resp.status_code == 404:
            return FetchResult.fail(FetchErrorKind.NOT_FOUND, f"Not found: {url}")
        if resp.status_code != 200:
            return FetchResult.fail(FetchErrorKind.TRANSIENT, f"HTTP {resp.status_code}: {url}")
        return FetchResult.ok(resp)

    @staticmethod
    def _parse_api_listing(text: str) -> list[str]:
        """Extract valid MatCap PNG names from a contents-API JSON body."""
        items = json.loads(text)
        if not isinstance(items, list):
            raise ValueError("contents API did not return a list")
        names = []
        for item in items:
            if not isinstance(item, dict):
                continue
            name = item.get("name", "")
            if isinstance(name, str) and is_valid_matcap_file_name(name):
                names.append(name)
        return names

    @staticmethod
    def _parse_tree_page(html: str) -> list[str]:
        names: dict[str, None] = {}
        for pattern in _PAGE_PATTERNS:
            for match in re.finditer(pattern, html, re.IGNORECASE):
                name = match.group(1)
                if is_valid_matcap_file_name(name):
                    names[name] = None
            if len(names) > _PAGE_MIN_MATCHES:
                break
        return list(names)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def list_directory(self, directory: str) -> FetchResult:
        """List MatCap file names in one repository directory via the contents API.

        Args:
            directory: Repository directory (e.g. "preview", "1024").

        Returns:
            FetchResult whose data is a list of file names.
        """
        result = self._get(API_BASE + directory, self.timeouts.listing)
        if not result.success:
            logger.warning("GitHub API request failed for %s: %s", directory, result.error)
            return result
        try:
            return FetchResult.ok(self._parse_api_listing(result.data.text))
        except ValueError as e:
            logger.warning("Failed to parse GitHub API response for %s: %s", directory, e)
            return FetchResult.fail(FetchErrorKind.INVALID, f"Unexpected API response: {e}")

    def scrape_page(self) -> FetchResult:
        """Fallback listing: regex-scan the repository's preview tree page.

        Returns:
            FetchResult whose data is a non-empty list of file names.
        """
        result = self._get(PAGE_URL, self.timeouts.listing)
        if not result.success:
            return FetchResult.fail(
                result.kind, f"Could not fetch matcap list from GitHub page: {result.error}"
            )
        names = self._parse_tree_page(result.data.text)
        if not names:
            return FetchResult.fail(FetchErrorKind.INVALID, "No valid matcap files found in page")
        return FetchResult.ok(names)

    def fetch_preview(self, file_name: str) -> FetchResult:
        """Download the preview image bytes for `file_name`."""
        result = self._get(f"{RAW_BASE}preview/{file_name}", self.timeouts.download)
        if not result.success:
            return result
        return FetchResult.ok(result.data.content)

    def fetch_matcap(self, file_name: str, resolution: int) -> FetchResult:
        """Download the full-resolution texture bytes for `file_name`.

        Args:
            file_name: Name as listed (preview markers are stripped).
            resolution: Repository resolution directory (256, 512 or 1024).
        """
        url = f"{RAW_BASE}{resolution}/{clean_file_name(file_name)}"
        result = self._get(url, self.timeouts.download)
        if not result.success:
            return result
        return FetchResult.ok(result.data.content)

    def test_connection(self) -> str:
        """Probe the contents API and the tree page; return a readable report."""
        lines = ["=== GitHub Connection Test ===", "", "Testing GitHub API..."]
        api = self._get(API_BASE + "preview", self.timeouts.connection_test)
        if api.success:
            try:
                count = len(self._parse_api_listing(api.data.text))
                lines.append(f"✓ API reachable ({count} files found)")
            except ValueError as e:
                lines.append(f"✗ API returned an unexpected response: {e}")
        else:
            lines.append(f"✗ API unreachable: {api.error}")

        lines += ["", "Testing GitHub Page..."]
        page = self._get(PAGE_URL, self.timeouts.connection_test)
        lines.append("✓ Page reachable" if page.success else f"✗ Page unreachable: {page.error}")
        lines += ["", "=== Test Complete ==="]
        return "\n".join(lines)
