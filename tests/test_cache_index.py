"""Tests for the cache index model and its JSON schema."""
import pytest

from matcap_browser.core.cache_index import (
    DEFAULT_EXPIRY_SECONDS,
    CacheEntry,
    CacheIndex,
    IndexParseError,
)

NOW = 1_700_000_000


def _raw_entry(name="a.png", cache_time=NOW, **overrides) -> dict:
    raw = {
        "fileName": name,
        "cacheFileName": f"preview_{name}",
        "cacheTime": cache_time,
        "fileSize": 10,
        "isValid": True,
    }
    raw.update(overrides)
    return raw


def test_to_dict_uses_index_file_field_names():
    index = CacheIndex()
    index.upsert("a.png", "preview_x.png", 42, NOW)
    assert index.to_dict() == {
        "entries": [
            {
                "fileName": "a.png",
                "cacheFileName": "preview_x.png",
                "cacheTime": NOW,
                "fileSize": 42,
                "isValid": True,
            }
        ],
        "lastUpdate": NOW,
    }


def test_from_dict_restores_entries():
    index = CacheIndex.from_dict({"entries": [_raw_entry("a.png"), _raw_entry("b.png")], "lastUpdate": 7})
    assert [e.source_key for e in index.entries] == ["a.png", "b.png"]
    assert index.last_update == 7
    assert index.get("b.png").cache_file_name == "preview_b.png"


def test_from_dict_keeps_last_duplicate():
    index = CacheIndex.from_dict(
        {"entries": [_raw_entry("a.png", fileSize=1), _raw_entry("a.png", fileSize=2)], "lastUpdate": 0}
    )
    assert len(index) == 1
    assert index.get("a.png").size_bytes == 2


def test_from_dict_defaults_missing_top_level_fields():
    index = CacheIndex.from_dict({})
    assert len(index) == 0
    assert index.last_update == 0


@pytest.mark.parametrize(
    "data",
    [
        [],
        "not an index",
        {"entries": "nope"},
        {"entries": [], "lastUpdate": "yesterday"},
        {"entries": [{"fileName": "a.png"}]},
        {"entries": [_raw_entry(cache_time="soon")]},
        {"entries": [_raw_entry(fileSize=True)]},
        {"entries": [_raw_entry(isValid="yes")]},
        {"entries": [_raw_entry(name="")]},
        {"entries": [42]},
    ],
)
def test_from_dict_rejects_malformed_shapes(data):
    with pytest.raises(IndexParseError):
        CacheIndex.from_dict(data)


def test_upsert_refreshes_existing_entry():
    index = CacheIndex()
    entry = index.upsert("a.png", "preview_1.png", 10, NOW)
    entry.valid = False

    refreshed = index.upsert("a.png", "preview_1.png", 20, NOW + 5)

    assert refreshed is entry
    assert len(index) == 1
    assert entry.cached_at == NOW + 5
    assert entry.size_bytes == 20
    assert entry.valid is True
    assert index.last_update == NOW + 5


def test_remove():
    index = CacheIndex()
    index.upsert("a.png", "p.png", 1, NOW)
    assert index.remove("a.png") is True
    assert index.remove("a.png") is False
    assert index.get("a.png") is None


def test_remove_expired_boundary():
    index = CacheIndex(
        entries=[
            CacheEntry("old.png", "p1.png", NOW - DEFAULT_EXPIRY_SECONDS, 1),
            CacheEntry("fresh.png", "p2.png", NOW - DEFAULT_EXPIRY_SECONDS + 1, 1),
            CacheEntry("ancient.png", "p3.png", NOW - 10 * DEFAULT_EXPIRY_SECONDS, 1, valid=False),
        ]
    )
    removed = index.remove_expired(NOW)
    assert removed == 2
    assert [e.source_key for e in index.entries] == ["fresh.png"]
