from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

from loadprobe.browser.events import EventBus


def safe_url(url: str) -> str:
    """Scheme, host and path only, so query strings never reach the logs."""
    s = (url or "").strip()
    if not s:
        return s
    try:
        parts = urlsplit(s)
    except ValueError:
        return s[:500]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


@dataclass(frozen=True)
class ContextHandle:
    """Opaque reference to one background browsing context."""

    context_id: str
    url: str


class BrowserHost(ABC):
    """Browsing environment the probe drives.

    Implementations publish navigation and download signals on ``events`` for
    every context they open.
    """

    def __init__(self, events: EventBus | None = None):
        self.events = events or EventBus()

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None

    @abstractmethod
    async def open_context(self, url: str) -> ContextHandle:
        """Open an inactive context and begin navigating to ``url`` without waiting for it."""

    @abstractmethod
    async def close_context(self, handle: ContextHandle) -> None:
        ...

    @abstractmethod
    async def download_size(self, download_id: str) -> int | None:
        """Size in bytes of a finished download, or None when unknown."""
