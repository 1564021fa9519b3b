from __future__ import annotations

import json
from dataclasses import replace

from brandkit.cache import HASHED_FIELDS, CacheStore, hash_config
from conftest import make_config


def test_hash_is_deterministic_and_short() -> None:
    config = make_config()
    first = hash_config(config, "minimal-background-0-prompt")
    second = hash_config(make_config(), "minimal-background-0-prompt")
    assert first == second
    assert len(first) == 16
    int(first, 16)


def test_hash_changes_with_prompt_and_logo() -> None:
    config = make_config()
    base = hash_config(config, "prompt-a")
    assert hash_config(config, "prompt-b") != base
    assert hash_config(config, "prompt-a", logo_digest="abc") != base
    assert hash_config(config, "prompt-a", logo_digest="abc") != hash_config(
        config, "prompt-a", logo_digest="def"
    )


def test_hashed_fields_are_pinned() -> None:
    assert HASHED_FIELDS == (
        "name",
        "tagline",
        "colors",
        "preset",
        "custom_styles",
        "custom_presets",
        "format",
        "quality",
        "background_size",
        "transparency",
        "compression",
    )


def test_run_control_fields_do_not_affect_hash() -> None:
    config = make_config()
    base = hash_config(config, "p")
    for changed in (
        replace(config, n=5),
        replace(config, styles=("clay",)),
        replace(config, cache=False),
        replace(config, dry_run=True),
        replace(config, demo_mode=True),
        replace(config, api_key="sk-other"),
    ):
        assert hash_config(changed, "p") == base


def test_output_fields_affect_hash() -> None:
    config = make_config()
    base = hash_config(config, "p")
    for changed in (
        replace(config, tagline="New"),
        replace(config, quality="low"),
        replace(config, format="jpeg"),
        replace(config, colors=("#000000",)),
        replace(config, background_size="square"),
        replace(config, preset="noir"),
    ):
        assert hash_config(changed, "p") != base


def test_store_then_lookup_round_trip(tmp_path) -> None:
    store = CacheStore(tmp_path / "cache.json")
    config = make_config()
    image = tmp_path / "image.png"
    image.write_bytes(b"png")

    store.store("abc123", image, config)

    assert store.lookup("abc123", config) == image
    assert store.lookup("missing", config) is None


def test_lookup_misses_when_file_is_gone(tmp_path) -> None:
    store = CacheStore(tmp_path / "cache.json")
    config = make_config()
    image = tmp_path / "image.png"
    image.write_bytes(b"png")
    store.store("abc123", image, config)

    image.unlink()

    assert store.lookup("abc123", config) is None


def test_disabled_cache_neither_reads_nor_writes(tmp_path) -> None:
    store = CacheStore(tmp_path / "cache.json")
    image = tmp_path / "image.png"
    image.write_bytes(b"png")

    store.store("abc123", image, make_config(cache=False))
    assert not store.path.exists()

    store.store("abc123", image, make_config())
    assert store.lookup("abc123", make_config(cache=False)) is None


def test_cache_file_is_a_flat_record_list(tmp_path) -> None:
    store = CacheStore(tmp_path / "nested" / "cache.json")
    image = tmp_path / "image.png"
    image.write_bytes(b"png")

    store.store("k1", image, make_config(), logo_digest="d1")
    store.store("k2", image, make_config())

    records = json.loads(store.path.read_text(encoding="utf-8"))
    assert [r["hash"] for r in records] == ["k1", "k2"]
    assert set(records[0]) == {"hash", "path", "timestamp", "config"}
    assert records[0]["config"]["logo"] == "d1"
    assert "n" not in records[0]["config"]


def test_corrupt_cache_file_reads_as_empty(tmp_path) -> None:
    path = tmp_path / "cache.json"
    path.write_text("{not json", encoding="utf-8")
    store = CacheStore(path)
    assert store.entries() == {}
    assert store.lookup("k", make_config()) is None
