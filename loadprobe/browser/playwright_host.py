"""Chromium-backed browsing host using Playwright."""

from __future__ import annotations

import asyncio
import os
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Coroutine

import structlog
from playwright.async_api import Browser, BrowserContext, Download, Page, async_playwright

from loadprobe.browser.events import (
    DOWNLOAD_COMPLETE,
    DOWNLOAD_INTERRUPTED,
    NAV_COMPLETE,
    NAV_FAILED,
    NAV_LOADING,
    DownloadCreated,
    DownloadStateChanged,
    EventBus,
    NavigationStateChanged,
    SignalKind,
)
from loadprobe.browser.host import BrowserHost, ContextHandle, safe_url
from loadprobe.errors import NavigationError

logger = structlog.get_logger(__name__)


def find_chromium_executable() -> str | None:
    env_path = os.getenv("CHROMIUM_PATH")
    if env_path and Path(env_path).exists():
        return env_path

    candidates = [
        "/usr/bin/chromium",
        "/usr/bin/chromium-browser",
        "/usr/bin/google-chrome",
        "/usr/bin/google-chrome-stable",
        "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    ]
    for path in candidates:
        if Path(path).exists():
            return path
    return None


# Failures of our own browser/driver rather than of the target site.
_INFRA_ERROR_MARKERS = (
    "target page, context or browser has been closed",
    "browser has been closed",
    "page crashed",
    "target crashed",
    "connection closed while reading from the driver",
    "connection closed while writing to the driver",
    "pipe closed by peer",
)


def is_browser_infra_error(exc: Exception) -> bool:
    if type(exc).__name__ == "TargetClosedError":
        return True
    msg = str(exc or "").lower()
    return any(marker in msg for marker in _INFRA_ERROR_MARKERS)


def describe_failure(exc: Exception) -> str:
    """Error text recorded on the outcome, tagged when the browser itself broke."""
    text = f"{type(exc).__name__}: {exc}"
    if is_browser_infra_error(exc):
        return f"browser_infra_error: {text}"
    return text


def is_download_abort(exc: Exception) -> bool:
    """Navigations that turn into downloads reject goto(); the download signal covers them."""
    msg = str(exc or "").lower()
    return "download is starting" in msg or "net::err_aborted" in msg


@dataclass
class _OpenContext:
    context: BrowserContext
    page: Page
    tasks: set[asyncio.Task[Any]] = field(default_factory=set)
    download_ids: list[str] = field(default_factory=list)
    closing: bool = False


class PlaywrightHost(BrowserHost):
    """Opens one isolated browser context per probe and publishes its signals."""

    def __init__(
        self,
        *,
        headless: bool = True,
        downloads_directory: str | None = None,
        events: EventBus | None = None,
    ):
        super().__init__(events)
        self.headless = headless
        self.downloads_directory = downloads_directory
        self.browser: Browser | None = None
        self._playwright = None
        self._contexts: dict[str, _OpenContext] = {}
        self._download_sizes: dict[str, int] = {}

    async def start(self) -> None:
        """Launch the browser."""
        if self.browser is not None:
            return
        logger.info("Starting browser host", headless=self.headless)

        launch_kwargs: dict[str, Any] = {"headless": self.headless}
        chromium_path = find_chromium_executable()
        if chromium_path:
            launch_kwargs["executable_path"] = chromium_path
        if self.downloads_directory:
            Path(self.downloads_directory).mkdir(parents=True, exist_ok=True)
            launch_kwargs["downloads_path"] = self.downloads_directory

        self._playwright = await async_playwright().start()
        self.browser = await self._playwright.chromium.launch(**launch_kwargs)

    async def stop(self) -> None:
        """Close any open contexts and the browser."""
        logger.info("Stopping browser host")

        for context_id in list(self._contexts):
            await self.close_context(ContextHandle(context_id=context_id, url=""))
        if self.browser:
            await self.browser.close()
            self.browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def open_context(self, url: str) -> ContextHandle:
        if self.browser is None:
            raise NavigationError("browser_unavailable")

        try:
            context = await self.browser.new_context(accept_downloads=True, viewport={"width": 1280, "height": 720})
            page = await context.new_page()
        except Exception as e:
            raise NavigationError(f"browser_context_error: {type(e).__name__}: {e}") from e

        context_id = uuid.uuid4().hex
        entry = _OpenContext(context=context, page=page)
        self._contexts[context_id] = entry

        page.on("load", lambda _page: self._emit_navigation(context_id, NAV_COMPLETE))
        page.on("crash", lambda _page: self._emit_navigation(context_id, NAV_FAILED, "page crashed"))
        page.on("download", lambda download: self._on_download(context_id, download))

        self._emit_navigation(context_id, NAV_LOADING)
        self._spawn(entry, self._navigate(context_id, page, url))
        logger.debug("Opened browsing context", context_id=context_id, url=safe_url(url))
        return ContextHandle(context_id=context_id, url=url)

    async def close_context(self, handle: ContextHandle) -> None:
        entry = self._contexts.pop(handle.context_id, None)
        if entry is None:
            return
        entry.closing = True
        for task in entry.tasks:
            task.cancel()
        if entry.tasks:
            await asyncio.gather(*entry.tasks, return_exceptions=True)
        for download_id in entry.download_ids:
            self._download_sizes.pop(download_id, None)
        await entry.context.close()
        logger.debug("Closed browsing context", context_id=handle.context_id)

    async def download_size(self, download_id: str) -> int | None:
        return self._download_sizes.get(download_id)

    def _spawn(self, entry: _OpenContext, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        entry.tasks.add(task)
        task.add_done_callback(entry.tasks.discard)

    def _emit_navigation(self, context_id: str, status: str, error: str | None = None) -> None:
        self.events.emit(
            SignalKind.NAVIGATION_STATE_CHANGED,
            NavigationStateChanged(context_id=context_id, status=status, error=error),
        )

    async def _navigate(self, context_id: str, page: Page, url: str) -> None:
        # The detector owns the timeout, so goto itself never times out.
        try:
            await page.goto(url, wait_until="commit", timeout=0)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            entry = self._contexts.get(context_id)
            if entry is None or entry.closing:
                return
            if entry.download_ids or is_download_abort(e):
                logger.debug("Navigation turned into a download", context_id=context_id)
                return
            logger.warning(
                "Navigation failed",
                context_id=context_id,
                url=safe_url(url),
                error=str(e),
                browser_infra_error=is_browser_infra_error(e),
            )
            self._emit_navigation(context_id, NAV_FAILED, describe_failure(e))

    def _on_download(self, context_id: str, download: Download) -> None:
        entry = self._contexts.get(context_id)
        if entry is None or entry.closing:
            return
        download_id = uuid.uuid4().hex
        entry.download_ids.append(download_id)
        self.events.emit(SignalKind.DOWNLOAD_CREATED, DownloadCreated(download_id=download_id, url=download.url))
        self._spawn(entry, self._watch_download(download_id, download))

    async def _watch_download(self, download_id: str, download: Download) -> None:
        # failure() waits for the download to finish either way.
        try:
            failure = await download.failure()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(
                "Download watch failed",
                download_id=download_id,
                error=str(e),
                browser_infra_error=is_browser_infra_error(e),
            )
            self._emit_download(download_id, DOWNLOAD_INTERRUPTED, describe_failure(e))
            return

        if failure:
            self._emit_download(download_id, DOWNLOAD_INTERRUPTED, str(failure))
            return

        try:
            path = await download.path()
            self._download_sizes[download_id] = os.path.getsize(path)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Could not size download", download_id=download_id, error=str(e))
        self._emit_download(download_id, DOWNLOAD_COMPLETE)

    def _emit_download(self, download_id: str, state: str, error: str | None = None) -> None:
        self.events.emit(
            SignalKind.DOWNLOAD_STATE_CHANGED,
            DownloadStateChanged(download_id=download_id, state=state, error=error),
        )
