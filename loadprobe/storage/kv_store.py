from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


KEY_TARGET_URL = "targetUrl"
KEY_INTERVAL_SECONDS = "intervalSeconds"
KEY_IS_RUNNING = "isRunning"
KEY_TIMING_LOGS = "timingLogs"


def _write_state_atomic(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.tmp")
    tmp.write_text(json.dumps(payload, ensure_ascii=False, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


class JsonFileStore:
    """Key-value store persisted as a single JSON document.

    Reads and writes happen synchronously inside the coroutine, so a
    read-modify-write in ``set`` never interleaves with another caller on the
    same event loop.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except Exception as e:
            logger.warning("Unreadable state file, starting empty", path=str(self.path), error=str(e))
            return {}
        return raw if isinstance(raw, dict) else {}

    async def get(self, *keys: str) -> dict[str, Any]:
        """Return the requested keys that exist (all keys when none are given)."""
        data = self._load()
        if not keys:
            return data
        return {k: data[k] for k in keys if k in data}

    async def set(self, **values: Any) -> None:
        data = self._load()
        data.update(values)
        _write_state_atomic(self.path, data)

    async def ensure_defaults(self) -> None:
        data = self._load()
        missing: dict[str, Any] = {}
        if not isinstance(data.get(KEY_TIMING_LOGS), list):
            missing[KEY_TIMING_LOGS] = []
        if KEY_IS_RUNNING not in data:
            missing[KEY_IS_RUNNING] = False
        if missing:
            await self.set(**missing)
