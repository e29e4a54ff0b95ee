"""Formatting utilities for Markdown tables and display strings."""
from datetime import datetime, timezone


def fmt_file_size(num_bytes: int) -> str:
    """Format a byte count for display (e.g. 1536 → '1.5 KB')."""
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 ** 2:
        return f"{num_bytes / 1024:.1f} KB"
    if num_bytes < 1024 ** 3:
        return f"{num_bytes / 1024 ** 2:.1f} MB"
    return f"{num_bytes / 1024 ** 3:.1f} GB"


def fmt_timestamp(epoch_seconds: int) -> str:
    """Format UTC epoch seconds as 'YYYY-MM-DD HH:MM:SS', or 'Never' for 0."""
    if epoch_seconds <= 0:
        return "Never"
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def fmt_duration_days(seconds: int) -> str:
    """Format an expiry window in whole days (e.g. 604800 → '7 days')."""
    days = seconds // 86400
    return f"{days} day" if days == 1 else f"{days} days"


def truncate_name(name: str, max_chars: int) -> str:
    """Shorten a display name with a trailing ellipsis."""
    if max_chars < 4 or len(name) <= max_chars:
        return name
    return name[: max_chars - 3] + "..."


def markdown_table(headers: list[str], rows: list[list]) -> str:
    """Build a simple Markdown table.

    Args:
        headers: Column header strings.
        rows: List of row value lists (converted to str automatically).

    Returns:
        Markdown-formatted table string.
    """
    sep = " | ".join(["---"] * len(headers))
    header_row = " | ".join(headers)
    return f"| {header_row} |\n| {sep} |\n" + "\n".join(
        f"| {' | '.join(str(c) for c in row)} |" for row in rows
    )
