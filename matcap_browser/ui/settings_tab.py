"""Settings tab UI: download path, cache management and diagnostics."""
import logging

import gradio as gr

from matcap_browser.core.library import MatcapLibrary
from matcap_browser.ui.components import (
    SOURCE_REPO,
    build_help_accordion,
    cache_details_markdown,
    cache_summary_markdown,
    error_markdown,
    info_markdown,
)
from matcap_browser.utils.validators import validate_download_dir

logger = logging.getLogger(__name__)


def build_settings_tab(library: MatcapLibrary) -> None:
    """Build the settings tab UI within an active gr.Blocks context."""
    def summary() -> str:
        return cache_summary_markdown(*library.cache_info())

    with gr.Row():
        with gr.Column():
            gr.Markdown("### General")
            path_box = gr.Textbox(
                value=str(library.downloads.download_dir),
                label="Download path",
                info="Matcap files are saved here as Matcap_<name>.png",
            )
            apply_btn = gr.Button("Apply", size="sm")
            gr.Markdown(f"Resolution: **{library.resolution}px** (fixed)")
            general_status = gr.Markdown("")

            gr.Markdown("### Advanced")
            gr.Markdown(f"Source repository: `{SOURCE_REPO}`")
            with gr.Row():
                test_btn = gr.Button("Test connection")
                force_refresh_btn = gr.Button("Force refresh")
            report_box = gr.Textbox(label="Connection test", lines=8, interactive=False)

        with gr.Column():
            gr.Markdown("### Cache")
            summary_md = gr.Markdown(summary())
            with gr.Row():
                stats_btn = gr.Button("Show detailed info")
                clean_btn = gr.Button("Clean expired")
            confirm_cb = gr.Checkbox(
                value=False,
                label="I understand that clearing forces every preview to be downloaded again",
            )
            clear_btn = gr.Button("Clear all cache", variant="stop")
            cache_status = gr.Markdown("")
            details_md = gr.Markdown("")

    build_help_accordion()

    # ── Event handlers ────────────────────────────────────────────────────

    def on_apply(raw: str):
        path, err = validate_download_dir(raw)
        if path is None:
            return error_markdown(err)
        library.downloads.download_dir = path
        logger.info("Download path set to %s", path)
        return info_markdown(f"Download path set to `{path}`")

    apply_btn.click(on_apply, inputs=[path_box], outputs=[general_status])

    stats_btn.click(
        lambda: (summary(), cache_details_markdown(*library.cache_info())),
        outputs=[summary_md, details_md],
    )

    def on_clean():
        removed = library.clean_expired()
        return summary(), info_markdown(library.status_message)

    clean_btn.click(on_clean, outputs=[summary_md, cache_status])

    def on_clear(confirmed: bool):
        if not confirmed:
            return summary(), error_markdown("Tick the confirmation box first."), gr.update()
        if library.clear_cache():
            return summary(), info_markdown("Cache cleared successfully"), False
        return summary(), error_markdown("Failed to clear cache. See the log for details."), False

    clear_btn.click(on_clear, inputs=[confirm_cb], outputs=[summary_md, cache_status, confirm_cb])

    def on_test():
        library.test_connection()
        return info_markdown("Connection test started…")

    test_btn.click(on_test, outputs=[general_status])
    # The report arrives asynchronously once the test task completes.
    report_timer = gr.Timer(value=1.0)
    report_timer.tick(lambda: library.connection_report, outputs=[report_box], show_progress="hidden")

    def on_force_refresh():
        library.load_list()
        return info_markdown("Reloading the matcap list…")

    force_refresh_btn.click(on_force_refresh, outputs=[general_status])
