"""Wires the probe components together for one process."""

from typing import Optional

import structlog

from .browser.host import BrowserHost
from .config import ProbeConfig, get_config
from .probe.detector import OutcomeRaceDetector
from .probe.runner import ProbeRunner
from .scheduler.probe_scheduler import ProbeScheduler
from .storage.kv_store import JsonFileStore
from .storage.log_store import LogStore


logger = structlog.get_logger(__name__)


class ProbeCoordinator:
    """Owns the single store, host, runner and scheduler of a probe process."""

    def __init__(self, config: Optional[ProbeConfig] = None, host: Optional[BrowserHost] = None):
        self.config = config or get_config()
        if host is None:
            from .browser.playwright_host import PlaywrightHost

            host = PlaywrightHost(
                headless=self.config.browser_headless,
                downloads_directory=self.config.downloads_directory,
            )
        self.host = host
        self.store = JsonFileStore(self.config.state_path)
        self.log_store = LogStore(self.store, max_entries=self.config.max_log_entries)
        self.detector = OutcomeRaceDetector(
            self.host,
            timeout_seconds=self.config.probe_timeout_seconds,
            grace_seconds=self.config.download_grace_seconds,
        )
        self.runner = ProbeRunner(self.host, self.detector, self.log_store, self.store)
        self.scheduler = ProbeScheduler(
            self.runner,
            self.store,
            min_interval_seconds=self.config.min_interval_seconds,
            heartbeat_seconds=self.config.heartbeat_seconds,
        )

    async def start(self, restore_schedule: bool = True):
        """Initialise storage, start the browser and resume a persisted schedule."""
        await self.store.ensure_defaults()
        await self.host.start()
        if restore_schedule:
            await self.scheduler.restore()
        logger.info("Probe coordinator started", state_path=self.config.state_path)

    async def stop(self):
        await self.scheduler.shutdown()
        await self.host.stop()
        logger.info("Probe coordinator stopped")
