from __future__ import annotations

from typing import Callable

import structlog

from loadprobe.browser.host import BrowserHost, ContextHandle, safe_url
from loadprobe.errors import ConfigurationError
from loadprobe.models import Outcome
from loadprobe.probe.detector import OutcomeRaceDetector, monotonic_ms
from loadprobe.storage.kv_store import KEY_TARGET_URL, JsonFileStore
from loadprobe.storage.log_store import LogStore

logger = structlog.get_logger(__name__)


class ProbeRunner:
    """Runs one measurement at a time against the configured target URL."""

    def __init__(
        self,
        host: BrowserHost,
        detector: OutcomeRaceDetector,
        log_store: LogStore,
        store: JsonFileStore,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self.host = host
        self.detector = detector
        self.log_store = log_store
        self.store = store
        self.clock = clock
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def run_probe(self, target_url: str | None = None) -> Outcome | None:
        """Probe ``target_url`` (or the persisted one) and log the outcome.

        Returns None without doing anything when another probe is still running.
        """
        # Must be checked and set before the first await.
        if self._in_flight:
            logger.info("Probe already in flight, skipping trigger")
            return None
        self._in_flight = True

        try:
            outcome = await self._measure(target_url)
            try:
                await self.log_store.append(outcome)
            except Exception as e:
                logger.error("Failed to append outcome to log", error=str(e))
            logger.info(
                "probe_finished",
                success=outcome.success,
                type=outcome.type.value,
                duration_ms=outcome.duration_ms,
                file_size=outcome.file_size,
                error=outcome.error,
            )
            return outcome
        finally:
            self._in_flight = False

    async def _resolve_target(self, target_url: str | None) -> str:
        if target_url is None:
            data = await self.store.get(KEY_TARGET_URL)
            target_url = data.get(KEY_TARGET_URL)
        url = str(target_url or "").strip()
        if not url:
            raise ConfigurationError()
        return url

    async def _measure(self, target_url: str | None) -> Outcome:
        try:
            url = await self._resolve_target(target_url)
        except Exception as e:
            logger.warning("Probe not started", error=str(e))
            return Outcome.from_error(e, 0)

        logger.info("probe_started", url=safe_url(url))
        start_ms = self.clock()
        handle: ContextHandle | None = None
        try:
            handle = await self.host.open_context(url)
            return await self.detector.observe(handle, start_ms)
        except Exception as e:
            logger.error("Probe failed", url=safe_url(url), error=str(e))
            return Outcome.from_error(e, int(round(self.clock() - start_ms)))
        finally:
            if handle is not None:
                await self._close_quietly(handle)

    async def _close_quietly(self, handle: ContextHandle) -> None:
        try:
            await self.host.close_context(handle)
        except Exception as e:
            logger.warning("Failed to close browsing context", context_id=handle.context_id, error=str(e))
