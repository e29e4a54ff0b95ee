"""Matcap Browser — Gradio web application entry point."""
import logging
from pathlib import Path
from typing import Optional

import gradio as gr
import yaml

from matcap_browser.core.library import MatcapLibrary
from matcap_browser.core.task_runner import TaskRunner
from matcap_browser.data.cache_manager import CacheConfig, CacheManager
from matcap_browser.data.download_manager import DownloadManager
from matcap_browser.data.github_client import GitHubClient, Timeouts
from matcap_browser.ui.browser_tab import build_browser_tab
from matcap_browser.ui.settings_tab import build_settings_tab

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).parent
CONFIG_PATH = BASE_DIR / "config" / "settings.yaml"


def _build_theme() -> gr.themes.Base:
    """Build a dark theme with blue primary accents."""
    return gr.themes.Base(
        primary_hue="blue",
        secondary_hue="slate",
        neutral_hue="zinc",
    ).set(
        # ── Body ──────────────────────────────────────────────
        body_background_fill="#1e1e1e",
        body_text_color="#e0e0e0",
        # ── Block / Card ──────────────────────────────────────
        block_background_fill="#252525",
        block_border_color="#191919",
        block_shadow="none",
        # ── Primary button ────────────────────────────────────
        button_primary_background_fill="#4d80e6",
        button_primary_background_fill_hover="#5b8cf0",
        button_primary_text_color="#ffffff",
    )


def load_config(path: Optional[Path] = None) -> dict:
    """Load settings.yaml. Missing sections fall back to defaults downstream.

    Returns:
        Settings dict (empty if the file is empty).
    """
    with open(path or CONFIG_PATH, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _resolve(raw: str) -> Path:
    path = Path(raw)
    return path if path.is_absolute() else BASE_DIR / path


def build_library(config: dict) -> MatcapLibrary:
    """Wire the cache, GitHub client, download store and task runner together."""
    cache = CacheManager(CacheConfig.from_dict(config.get("cache", {}), base_dir=BASE_DIR))
    cache.initialize()

    github_cfg = config.get("github", {})
    timeouts = Timeouts(**github_cfg.get("timeouts", {}))
    github = GitHubClient(timeouts=timeouts, user_agent=github_cfg.get("user_agent", "MatcapBrowser/1.0"))

    downloads_cfg = config.get("downloads", {})
    downloads = DownloadManager(str(_resolve(downloads_cfg.get("dir", "downloads/matcaps"))))

    runner_cfg = config.get("runner", {})
    return MatcapLibrary(
        cache=cache,
        github=github,
        downloads=downloads,
        runner=TaskRunner(),
        resolution=int(downloads_cfg.get("resolution", 1024)),
        max_workers=int(runner_cfg.get("fetch_workers", 4)),
    )


def build_app(config: Optional[dict] = None) -> tuple[gr.Blocks, MatcapLibrary]:
    """Construct the Gradio Blocks app and the library it drives."""
    config = config if config is not None else load_config()
    library = build_library(config)
    tick_interval = float(config.get("runner", {}).get("tick_interval", 0.2))

    with gr.Blocks(title="Matcap Browser") as app:
        gr.Markdown("# Matcap Browser\nBrowse and download MatCap textures from GitHub")

        with gr.Tabs(selected="browse"):
            with gr.Tab("Browse", id="browse"):
                build_browser_tab(library, tick_interval=tick_interval)

            with gr.Tab("Settings", id="settings"):
                build_settings_tab(library)

        def on_page_load() -> None:
            library.load_list()

        app.load(on_page_load)

    return app, library


def main() -> None:
    config = load_config()
    app, library = build_app(config)
    server = config.get("server", {})
    try:
        app.launch(
            server_name=server.get("name", "127.0.0.1"),
            share=False,
            show_error=True,
            inbrowser=bool(server.get("inbrowser", True)),
            theme=_build_theme(),
        )
    finally:
        library.shutdown()


if __name__ == "__main__":
    main()
