"""Decides whether a freshly opened page ends in a rendered page or a download.

A navigation can render a page, start a file download, or both (some pages
trigger a delayed download after they finish loading). The detector folds the
navigation and download signal streams plus a hard timeout into exactly one
Outcome:

- page complete with no download: wait ``grace_seconds`` for a late download,
  then report ``page`` with the time to navigation completion;
- first download created (at any point): track that download id only, page
  completion is ignored from then on;
- tracked download complete / interrupted: report ``download``;
- navigation failed before any download: report ``none``;
- nothing within ``timeout_seconds``: report ``none`` with error ``timeout``.

Downloads are not filtered by originating page, since hosts cannot always tell
which page started one. The first download seen after observation starts is
the one tracked; a download from an unrelated page in that window would be
misattributed.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import structlog

from loadprobe.browser.events import (
    DOWNLOAD_COMPLETE,
    DOWNLOAD_INTERRUPTED,
    NAV_COMPLETE,
    NAV_FAILED,
    DownloadCreated,
    DownloadStateChanged,
    NavigationStateChanged,
    SignalKind,
    Subscription,
)
from loadprobe.browser.host import BrowserHost, ContextHandle
from loadprobe.errors import DownloadInterruptedError, NavigationError, ProbeTimeoutError
from loadprobe.models import Outcome

logger = structlog.get_logger(__name__)


DEFAULT_TIMEOUT_SECONDS = 320.0
DEFAULT_GRACE_SECONDS = 5.0


def monotonic_ms() -> float:
    return time.perf_counter() * 1000.0


@dataclass
class ProbeContext:
    handle: ContextHandle
    start_ms: float
    subscriptions: list[Subscription] = field(default_factory=list)
    page_ms: int | None = None
    download_id: str | None = None
    grace_deadline: float | None = None  # loop time


class OutcomeRaceDetector:
    def __init__(
        self,
        host: BrowserHost,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self.host = host
        self.timeout_seconds = float(timeout_seconds)
        self.grace_seconds = float(grace_seconds)
        self.clock = clock

    def _elapsed(self, ctx: ProbeContext) -> int:
        return max(0, int(round(self.clock() - ctx.start_ms)))

    async def observe(self, handle: ContextHandle, start_ms: float) -> Outcome:
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[tuple[SignalKind, Any]] = asyncio.Queue()
        bus = self.host.events
        ctx = ProbeContext(handle=handle, start_ms=start_ms)
        for kind in SignalKind:
            ctx.subscriptions.append(bus.subscribe(kind, lambda signal, kind=kind: queue.put_nowait((kind, signal))))
        timeout_at = loop.time() + self.timeout_seconds

        try:
            while True:
                # Already-delivered signals win over any deadline that expired meanwhile.
                if not queue.empty():
                    item = queue.get_nowait()
                else:
                    wake_at = timeout_at if ctx.grace_deadline is None else min(timeout_at, ctx.grace_deadline)
                    try:
                        item = await asyncio.wait_for(queue.get(), timeout=max(0.0, wake_at - loop.time()))
                    except asyncio.TimeoutError:
                        item = None

                if item is None:
                    now = loop.time()
                    if ctx.grace_deadline is not None and now >= ctx.grace_deadline and ctx.grace_deadline <= timeout_at:
                        logger.debug("Grace window elapsed without download", page_ms=ctx.page_ms)
                        return Outcome.page(ctx.page_ms or 0)
                    if now >= timeout_at:
                        logger.warning("Probe timed out", timeout_seconds=self.timeout_seconds)
                        return Outcome.from_error(ProbeTimeoutError(), self._elapsed(ctx))
                    continue

                kind, signal = item
                outcome = await self._apply(ctx, kind, signal, loop)
                if outcome is not None:
                    return outcome
        finally:
            for subscription in ctx.subscriptions:
                bus.unsubscribe(subscription)
            ctx.subscriptions.clear()

    async def _apply(
        self,
        ctx: ProbeContext,
        kind: SignalKind,
        signal: Any,
        loop: asyncio.AbstractEventLoop,
    ) -> Outcome | None:
        if kind is SignalKind.NAVIGATION_STATE_CHANGED:
            return self._on_navigation(ctx, signal, loop)
        if kind is SignalKind.DOWNLOAD_CREATED:
            self._on_download_created(ctx, signal)
            return None
        if kind is SignalKind.DOWNLOAD_STATE_CHANGED:
            return await self._on_download_changed(ctx, signal)
        return None

    def _on_navigation(
        self,
        ctx: ProbeContext,
        signal: NavigationStateChanged,
        loop: asyncio.AbstractEventLoop,
    ) -> Outcome | None:
        if signal.context_id != ctx.handle.context_id or ctx.download_id is not None:
            return None

        if signal.status == NAV_COMPLETE:
            # Later completions (e.g. client-side redirects) do not restart the window.
            if ctx.page_ms is None:
                ctx.page_ms = self._elapsed(ctx)
                ctx.grace_deadline = loop.time() + self.grace_seconds
                logger.debug("Page complete, waiting for late download", page_ms=ctx.page_ms)
            return None

        if signal.status == NAV_FAILED:
            return Outcome.from_error(NavigationError(signal.error), self._elapsed(ctx))

        return None

    def _on_download_created(self, ctx: ProbeContext, signal: DownloadCreated) -> None:
        if ctx.download_id is not None:
            return
        ctx.download_id = signal.download_id
        ctx.grace_deadline = None
        logger.debug("Download started", download_id=signal.download_id, page_seen=ctx.page_ms is not None)

    async def _on_download_changed(self, ctx: ProbeContext, signal: DownloadStateChanged) -> Outcome | None:
        if ctx.download_id is None or signal.download_id != ctx.download_id:
            return None

        if signal.state == DOWNLOAD_COMPLETE:
            elapsed = self._elapsed(ctx)
            return Outcome.download(elapsed, await self._lookup_size(signal.download_id))

        if signal.state == DOWNLOAD_INTERRUPTED:
            return Outcome.from_error(DownloadInterruptedError(signal.error), self._elapsed(ctx))

        return None

    async def _lookup_size(self, download_id: str) -> int:
        try:
            return int(await self.host.download_size(download_id) or 0)
        except Exception as e:
            logger.warning("Download size lookup failed", download_id=download_id, error=str(e))
            return 0
