"""Tests for display formatting helpers."""
from matcap_browser.utils.formatter import (
    fmt_duration_days,
    fmt_file_size,
    fmt_timestamp,
    markdown_table,
    truncate_name,
)


def test_fmt_file_size():
    assert fmt_file_size(0) == "0 B"
    assert fmt_file_size(1536) == "1.5 KB"
    assert fmt_file_size(5 * 1024 ** 2) == "5.0 MB"
    assert fmt_file_size(3 * 1024 ** 3) == "3.0 GB"


def test_fmt_timestamp():
    assert fmt_timestamp(0) == "Never"
    assert fmt_timestamp(1_700_000_000) == "2023-11-14 22:13:20"


def test_fmt_duration_days():
    assert fmt_duration_days(604800) == "7 days"
    assert fmt_duration_days(86400) == "1 day"


def test_truncate_name():
    assert truncate_name("short", 10) == "short"
    assert truncate_name("3B3C3F_DAD9D5_929290_ABACA8", 10) == "3B3C3F_..."


def test_markdown_table():
    table = markdown_table(["Metric", "Value"], [["Entries", 3]])
    assert table == "| Metric | Value |\n| --- | --- |\n| Entries | 3 |"
