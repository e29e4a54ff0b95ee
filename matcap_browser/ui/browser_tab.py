"""Browse tab UI: gallery/list of MatCaps, search, sort and downloads."""
import logging

import gradio as gr
import pandas as pd

from matcap_browser.core.library import MatcapItem, MatcapLibrary, SortMode
from matcap_browser.ui.components import connection_badge
from matcap_browser.utils.formatter import truncate_name
from matcap_browser.utils.images import placeholder_image

logger = logging.getLogger(__name__)

_TABLE_COLUMNS = ["Name", "Status", "File"]
_PLACEHOLDER = placeholder_image()


def _item_status(item: MatcapItem) -> str:
    if item.is_downloading:
        return "Downloading..."
    if item.is_downloaded:
        return "Downloaded"
    return "Available"


def items_to_gallery(items: list[MatcapItem], max_chars: int = 24) -> list[tuple]:
    """Convert items to Gallery (image, caption) pairs."""
    gallery = []
    for item in items:
        caption = truncate_name(item.name, max_chars)
        if item.is_downloaded:
            caption = f"✓ {caption}"
        gallery.append((item.preview if item.preview is not None else _PLACEHOLDER, caption))
    return gallery


def items_to_dataframe(items: list[MatcapItem]) -> pd.DataFrame:
    """Convert items to a display-ready DataFrame for the list view."""
    if not items:
        return pd.DataFrame(columns=_TABLE_COLUMNS)
    rows = [
        {"Name": item.name, "Status": _item_status(item), "File": item.file_name}
        for item in items
    ]
    return pd.DataFrame(rows, columns=_TABLE_COLUMNS)


def status_line(library: MatcapLibrary) -> str:
    """Status bar text: badge, counts and the last status message."""
    total = len(library.items)
    parts = [connection_badge(library.is_loading, total)]
    if library.is_loading and total:
        parts.append(f"previews {library.loaded_preview_count}/{total}")
    if total:
        parts.append(f"showing {len(library.visible_items())}/{total}, {library.downloaded_count} downloaded")
    if library.downloading_count:
        parts.append(f"{library.downloading_count} downloading")
    if library.selected:
        parts.append(f"selected: `{library.selected}`")
    if library.status_message:
        parts.append(library.status_message)
    return " · ".join(parts)


def build_browser_tab(library: MatcapLibrary, tick_interval: float = 0.2) -> None:
    """Build the browse tab UI within an active gr.Blocks context.

    Args:
        library: MatcapLibrary instance shared with the settings tab.
        tick_interval: Seconds between task runner ticks.
    """
    sort_choices = [mode.value for mode in SortMode]

    with gr.Row():
        # ── Left panel: controls ──────────────────────────────────────────
        with gr.Column(scale=1, min_width=240):
            search_box = gr.Textbox(label="Search", placeholder="Filter matcaps by name")
            sort_dd = gr.Dropdown(choices=sort_choices, value=SortMode.NAME.value, label="Sort by")
            ascending_cb = gr.Checkbox(value=True, label="Ascending")
            view_radio = gr.Radio(choices=["Grid", "List"], value="Grid", label="View")
            columns_slider = gr.Slider(minimum=2, maximum=10, value=6, step=1, label="Thumbnails per row")

            refresh_btn = gr.Button("Refresh", variant="secondary")
            download_btn = gr.Button("Download selected", variant="primary")
            download_all_btn = gr.Button("Download all", variant="secondary")

        # ── Right panel: results ──────────────────────────────────────────
        with gr.Column(scale=3):
            status_md = gr.Markdown(status_line(library))
            gallery = gr.Gallery(
                label="Matcaps",
                columns=6,
                height=640,
                allow_preview=False,
                object_fit="contain",
            )
            table = gr.DataFrame(
                value=items_to_dataframe([]),
                interactive=False,
                wrap=False,
                visible=False,
            )

    visible_names = gr.State([])
    last_revision = gr.State(-1)
    timer = gr.Timer(value=tick_interval)

    # ── Event handlers ────────────────────────────────────────────────────

    def render():
        items = library.visible_items()
        return (
            items_to_gallery(items),
            items_to_dataframe(items),
            status_line(library),
            [i.file_name for i in items],
            library.revision,
        )

    render_outputs = [gallery, table, status_md, visible_names, last_revision]

    def on_tick(previous_revision: int):
        try:
            library.tick()
        except Exception:
            logger.exception("Task runner tick failed")
        if library.revision == previous_revision:
            return gr.update(), gr.update(), gr.update(), gr.update(), previous_revision
        return render()

    timer.tick(on_tick, inputs=[last_revision], outputs=render_outputs, show_progress="hidden")

    def on_search(text: str):
        library.set_search(text)
        return render()

    search_box.change(on_search, inputs=[search_box], outputs=render_outputs, show_progress="hidden")

    def on_sort(mode: str, ascending: bool):
        library.set_sort(SortMode(mode), ascending)
        return render()

    sort_dd.change(on_sort, inputs=[sort_dd, ascending_cb], outputs=render_outputs)
    ascending_cb.change(on_sort, inputs=[sort_dd, ascending_cb], outputs=render_outputs)

    def on_view(mode: str):
        is_list = mode == "List"
        return gr.update(visible=not is_list), gr.update(visible=is_list)

    view_radio.change(on_view, inputs=[view_radio], outputs=[gallery, table])
    columns_slider.change(lambda n: gr.update(columns=int(n)), inputs=[columns_slider], outputs=[gallery])

    def on_gallery_select(names: list, evt: gr.SelectData):
        if evt.index is not None and 0 <= evt.index < len(names):
            library.select(names[evt.index])
        return status_line(library)

    gallery.select(on_gallery_select, inputs=[visible_names], outputs=[status_md])

    def on_table_select(names: list, evt: gr.SelectData):
        row = evt.index[0] if isinstance(evt.index, (list, tuple)) else evt.index
        if row is not None and 0 <= row < len(names):
            library.select(names[row])
        return status_line(library)

    table.select(on_table_select, inputs=[visible_names], outputs=[status_md])

    def on_refresh():
        library.load_list()
        return render()

    refresh_btn.click(on_refresh, outputs=render_outputs)

    def on_download():
        library.download()
        return render()

    download_btn.click(on_download, outputs=render_outputs)

    def on_download_all():
        library.download_all()
        return render()

    download_all_btn.click(on_download_all, outputs=render_outputs)
