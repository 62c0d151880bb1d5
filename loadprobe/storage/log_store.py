from __future__ import annotations

from typing import Any

from loadprobe.models import Outcome
from loadprobe.storage.kv_store import KEY_TIMING_LOGS, JsonFileStore


DEFAULT_MAX_ENTRIES = 600


def coerce_logs(raw: Any) -> list[dict[str, Any]]:
    """
    Best-effort decode for the persisted timing log.
    Ignores invalid entries to be robust to partial writes or older formats.
    """
    if not isinstance(raw, list):
        return []
    return [item for item in raw if isinstance(item, dict)]


class LogStore:
    """Newest-first, size-capped sequence of probe outcomes."""

    def __init__(self, store: JsonFileStore, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.store = store
        self.max_entries = int(max_entries)

    async def append(self, outcome: Outcome) -> None:
        data = await self.store.get(KEY_TIMING_LOGS)
        logs = coerce_logs(data.get(KEY_TIMING_LOGS))
        logs.insert(0, outcome.to_dict())
        del logs[self.max_entries:]
        await self.store.set(**{KEY_TIMING_LOGS: logs})

    async def entries(self) -> list[Outcome]:
        data = await self.store.get(KEY_TIMING_LOGS)
        return [Outcome.from_dict(item) for item in coerce_logs(data.get(KEY_TIMING_LOGS))]

    async def clear(self) -> None:
        await self.store.set(**{KEY_TIMING_LOGS: []})
