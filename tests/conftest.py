from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Awaitable, Callable

import pytest

from loadprobe.browser.events import (
    DownloadCreated,
    DownloadStateChanged,
    NavigationStateChanged,
    SignalKind,
)
from loadprobe.browser.host import BrowserHost, ContextHandle
from loadprobe.storage.kv_store import JsonFileStore


class FakeClock:
    """Millisecond clock that only moves when a test says so."""

    def __init__(self, now: float = 0.0):
        self.now = float(now)

    def __call__(self) -> float:
        return self.now


Script = Callable[["FakeBrowserHost", ContextHandle], Awaitable[None]]


class FakeBrowserHost(BrowserHost):
    """In-memory host; an optional script plays browser signals for each opened context."""

    def __init__(
        self,
        script: Script | None = None,
        *,
        sizes: dict[str, int] | None = None,
        open_error: Exception | None = None,
        close_error: Exception | None = None,
    ):
        super().__init__()
        self.script = script
        self.sizes = dict(sizes or {})
        self.open_error = open_error
        self.close_error = close_error
        self.opened: list[ContextHandle] = []
        self.closed: list[ContextHandle] = []
        self.started = False
        self.stopped = False
        self._tasks: list[asyncio.Task[None]] = []

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    async def open_context(self, url: str) -> ContextHandle:
        if self.open_error is not None:
            raise self.open_error
        handle = ContextHandle(context_id=f"ctx-{len(self.opened) + 1}", url=url)
        self.opened.append(handle)
        if self.script is not None:
            self._tasks.append(asyncio.create_task(self.script(self, handle)))
        return handle

    async def close_context(self, handle: ContextHandle) -> None:
        self.closed.append(handle)
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()
        if self.close_error is not None:
            raise self.close_error

    async def download_size(self, download_id: str) -> int | None:
        size = self.sizes.get(download_id)
        if isinstance(size, Exception):
            raise size
        return size

    def navigation(self, handle: ContextHandle, status: str, error: str | None = None) -> None:
        self.events.emit(
            SignalKind.NAVIGATION_STATE_CHANGED,
            NavigationStateChanged(context_id=handle.context_id, status=status, error=error),
        )

    def download_created(self, download_id: str) -> None:
        self.events.emit(SignalKind.DOWNLOAD_CREATED, DownloadCreated(download_id=download_id))

    def download_state(self, download_id: str, state: str, error: str | None = None) -> None:
        self.events.emit(
            SignalKind.DOWNLOAD_STATE_CHANGED,
            DownloadStateChanged(download_id=download_id, state=state, error=error),
        )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    return tmp_path / "state.json"


@pytest.fixture
def store(state_path: Path) -> JsonFileStore:
    return JsonFileStore(state_path)
