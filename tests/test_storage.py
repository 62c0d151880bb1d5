from __future__ import annotations

import json
from pathlib import Path

import pytest

from loadprobe.models import Outcome, OutcomeType
from loadprobe.storage.kv_store import (
    KEY_INTERVAL_SECONDS,
    KEY_IS_RUNNING,
    KEY_TARGET_URL,
    KEY_TIMING_LOGS,
    JsonFileStore,
)
from loadprobe.storage.log_store import LogStore, coerce_logs


@pytest.mark.asyncio
async def test_missing_file_reads_empty(store: JsonFileStore) -> None:
    assert await store.get() == {}
    assert await store.get(KEY_TARGET_URL) == {}


@pytest.mark.asyncio
async def test_set_merges_and_get_returns_only_existing_keys(store: JsonFileStore, state_path: Path) -> None:
    await store.set(**{KEY_TARGET_URL: "https://example.test/"})
    await store.set(**{KEY_INTERVAL_SECONDS: 60})

    assert await store.get(KEY_TARGET_URL, KEY_INTERVAL_SECONDS, KEY_IS_RUNNING) == {
        KEY_TARGET_URL: "https://example.test/",
        KEY_INTERVAL_SECONDS: 60,
    }
    assert json.loads(state_path.read_text(encoding="utf-8"))[KEY_INTERVAL_SECONDS] == 60
    assert not state_path.with_name(f"{state_path.name}.tmp").exists()


@pytest.mark.asyncio
async def test_corrupt_state_file_reads_empty_and_is_rewritten(store: JsonFileStore, state_path: Path) -> None:
    state_path.write_text("{not json", encoding="utf-8")

    assert await store.get() == {}

    await store.set(**{KEY_IS_RUNNING: True})
    assert await store.get() == {KEY_IS_RUNNING: True}


@pytest.mark.asyncio
async def test_ensure_defaults_keeps_existing_values(store: JsonFileStore) -> None:
    await store.set(**{KEY_IS_RUNNING: True, KEY_INTERVAL_SECONDS: 30})

    await store.ensure_defaults()
    await store.ensure_defaults()

    data = await store.get()
    assert data[KEY_IS_RUNNING] is True
    assert data[KEY_INTERVAL_SECONDS] == 30
    assert data[KEY_TIMING_LOGS] == []


@pytest.mark.asyncio
async def test_log_store_is_newest_first_and_capped(store: JsonFileStore) -> None:
    log = LogStore(store, max_entries=3)
    for ms in (100, 200, 300, 400, 500):
        await log.append(Outcome.page(ms))

    entries = await log.entries()
    assert [e.duration_ms for e in entries] == [500, 400, 300]


@pytest.mark.asyncio
async def test_log_store_default_cap_is_600(store: JsonFileStore) -> None:
    log = LogStore(store)
    await store.set(**{KEY_TIMING_LOGS: [Outcome.page(i).to_dict() for i in range(600)]})

    await log.append(Outcome.download(9999, 1))

    entries = await log.entries()
    assert len(entries) == 600
    assert entries[0].type == OutcomeType.DOWNLOAD
    assert entries[-1].duration_ms == 598


@pytest.mark.asyncio
async def test_log_store_clear(store: JsonFileStore) -> None:
    log = LogStore(store)
    await log.append(Outcome.page(1))

    await log.clear()

    assert await log.entries() == []
    assert (await store.get(KEY_TIMING_LOGS))[KEY_TIMING_LOGS] == []


@pytest.mark.asyncio
async def test_log_store_skips_garbage_entries(store: JsonFileStore) -> None:
    await store.set(**{KEY_TIMING_LOGS: ["junk", None, {"success": True, "type": "page", "durationMs": 12}]})

    entries = await LogStore(store).entries()

    assert len(entries) == 1
    assert entries[0].duration_ms == 12


def test_coerce_logs_rejects_non_list() -> None:
    assert coerce_logs({"a": 1}) == []
    assert coerce_logs(None) == []


def test_log_store_rejects_zero_cap(store: JsonFileStore) -> None:
    with pytest.raises(ValueError):
        LogStore(store, max_entries=0)
