"""Shared Gradio UI components."""
from pathlib import Path

import gradio as gr

from matcap_browser.data.cache_manager import CacheStatistics
from matcap_browser.utils.formatter import fmt_duration_days, fmt_file_size, fmt_timestamp, markdown_table

SOURCE_REPO = "github.com/nidorx/matcaps"

HELP_MARKDOWN = f"""### Matcap Browser Help

**Browse tab**
- *Refresh* reloads the matcap list from GitHub
- *Download selected* saves the selected matcap at full resolution
- *Download all* downloads every matcap not on disk yet
- Search filters by name; sort by name, downloaded state or preview size
- Click a thumbnail (or a table row) to select it

**Settings tab**
- *Download path* is where `Matcap_<name>.png` files are written
- The preview cache keeps thumbnails on disk so later sessions start faster
- *Clean expired* drops stale cache entries; *Clear all* wipes the cache

Source: {SOURCE_REPO}
"""


def connection_badge(is_loading: bool, item_count: int) -> str:
    """Return a Markdown badge describing the list state."""
    if is_loading:
        return "🟡 **Loading**"
    if item_count > 0:
        return f"🟢 **Connected** — {item_count} matcaps"
    return "🔴 **Not connected**"


def error_markdown(message: str) -> str:
    """Wrap an error message in Markdown."""
    return f"❌ **Error:** {message}"


def info_markdown(message: str) -> str:
    """Wrap an info message in Markdown."""
    return f"ℹ️ {message}"


def cache_summary_markdown(stats: CacheStatistics, cache_dir: Path, expiry_seconds: int) -> str:
    """Short cache overview for the settings tab."""
    return markdown_table(
        ["Item", "Value"],
        [
            ["Cache location", f"`{cache_dir}`"],
            [
                "Cached items",
                f"{stats.total_entries} total ({stats.valid_entries} valid, {stats.expired_entries} expired)",
            ],
            ["Cache size", fmt_file_size(stats.total_size)],
            ["Cache expiry", fmt_duration_days(expiry_seconds)],
        ],
    )


def cache_details_markdown(stats: CacheStatistics, cache_dir: Path, expiry_seconds: int) -> str:
    """Full cache report, the equivalent of the "Show Detailed Info" dialog."""
    table = markdown_table(
        ["Metric", "Value"],
        [
            ["Total entries", stats.total_entries],
            ["Valid entries", stats.valid_entries],
            ["Expired entries", stats.expired_entries],
            ["Total size", fmt_file_size(stats.total_size)],
            ["Valid size", fmt_file_size(stats.valid_size)],
            ["Last updated (UTC)", fmt_timestamp(stats.last_update)],
            ["Cache expiry", fmt_duration_days(expiry_seconds)],
        ],
    )
    return (
        f"### Matcap Cache Information\n\nCache location: `{cache_dir}`\n\n{table}\n\n"
        "*The cache stores preview images to speed up loading on later sessions.*"
    )


def build_help_accordion() -> gr.Accordion:
    with gr.Accordion("Help", open=False) as accordion:
        gr.Markdown(HELP_MARKDOWN)
    return accordion
