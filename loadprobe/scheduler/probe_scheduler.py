"""Recurring probe scheduling using APScheduler."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import structlog
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..models import Outcome, SchedulerState
from ..probe.runner import ProbeRunner
from ..storage.kv_store import KEY_INTERVAL_SECONDS, KEY_IS_RUNNING, JsonFileStore


logger = structlog.get_logger(__name__)

PROBE_JOB_ID = "probe_cycle"
HEARTBEAT_JOB_ID = "keepalive"

STATE_IDLE = "idle"
STATE_ARMED = "armed"


class ProbeScheduler:
    """Owns the Idle/Armed timer state for recurring probes.

    Each cycle is a one-shot job that re-arms itself after the probe finishes,
    using whatever interval is persisted at that moment. The job id is fixed, so
    at most one re-arm timer is ever pending.
    """

    def __init__(
        self,
        runner: ProbeRunner,
        store: JsonFileStore,
        min_interval_seconds: float = 10.0,
        heartbeat_seconds: float = 30.0,
    ):
        self.runner = runner
        self.store = store
        self.min_interval_seconds = float(min_interval_seconds)
        self.heartbeat_seconds = float(heartbeat_seconds)
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._firing = False
        self.heartbeats = 0

    def _ensure_started(self):
        if self.scheduler is None:
            self.scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Probe scheduler started")

    def _valid_interval(self, state: SchedulerState) -> Optional[float]:
        interval = state.interval_seconds
        if interval is None or interval < self.min_interval_seconds:
            return None
        return interval

    async def read_state(self) -> SchedulerState:
        data = await self.store.get(KEY_IS_RUNNING, KEY_INTERVAL_SECONDS)
        return SchedulerState.from_store(data)

    @property
    def pending_job(self):
        if self.scheduler is None:
            return None
        return self.scheduler.get_job(PROBE_JOB_ID)

    @property
    def state(self) -> str:
        return STATE_ARMED if (self.pending_job is not None or self._firing) else STATE_IDLE

    async def start(self, interval_seconds: float):
        """Persist the running state and arm the first cycle."""
        if interval_seconds is None or float(interval_seconds) < self.min_interval_seconds:
            raise ValueError(f"interval_seconds must be >= {self.min_interval_seconds:g}")

        await self.store.set(**{KEY_IS_RUNNING: True, KEY_INTERVAL_SECONDS: interval_seconds})
        self._ensure_started()
        self._arm(float(interval_seconds))
        self._enable_heartbeat()
        logger.info("Probe schedule started", interval_seconds=interval_seconds)

    async def stop(self):
        """Cancel the pending cycle. A probe already running still completes and is logged."""
        self._cancel_pending()
        await self.store.set(**{KEY_IS_RUNNING: False})
        self._disable_heartbeat()
        logger.info("Probe schedule stopped")

    async def run_now(self) -> Optional[Outcome]:
        """Probe immediately without touching the schedule."""
        return await self.runner.run_probe()

    async def restore(self) -> bool:
        """Re-arm from persisted state after a (re)start.

        Safe to call repeatedly: an already pending or running cycle is left alone.
        """
        state = await self.read_state()
        interval = self._valid_interval(state)
        if not (state.is_running and interval):
            return False

        self._ensure_started()
        if self.pending_job is None and not self._firing:
            self._arm(interval)
            logger.info("Restored probe schedule", interval_seconds=interval)
        self._enable_heartbeat()
        return True

    async def shutdown(self):
        """Stop timers without changing persisted state, so restore() resumes later."""
        if self.scheduler is None:
            return
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Probe scheduler shut down")
        self.scheduler = None

    async def status(self) -> Dict[str, Any]:
        state = await self.read_state()
        job = self.pending_job
        next_run = job.next_run_time if job is not None else None
        return {
            "state": self.state,
            "isRunning": state.is_running,
            "intervalSeconds": state.interval_seconds,
            "nextRunAt": next_run.isoformat() if next_run else None,
            "probeInFlight": self.runner.in_flight,
        }

    def _arm(self, interval_seconds: float):
        run_at = datetime.now(timezone.utc) + timedelta(seconds=interval_seconds)
        self.scheduler.add_job(
            self._fire,
            trigger=DateTrigger(run_date=run_at),
            id=PROBE_JOB_ID,
            name="probe cycle",
            replace_existing=True,
            misfire_grace_time=None,
            coalesce=True,
        )
        logger.debug("Armed probe cycle", run_at=run_at.isoformat())

    def _cancel_pending(self):
        if self.scheduler is None:
            return
        try:
            self.scheduler.remove_job(PROBE_JOB_ID)
        except JobLookupError:
            pass

    async def _fire(self):
        self._firing = True
        try:
            self._cancel_pending()
            try:
                await self.runner.run_probe()
            except Exception as e:
                logger.error("Scheduled probe raised", error=str(e))

            state = await self.read_state()
            interval = self._valid_interval(state)
            if state.is_running and interval and self.scheduler is not None:
                self._arm(interval)
            else:
                logger.info("Schedule no longer running, not re-arming")
        finally:
            self._firing = False

    def _enable_heartbeat(self):
        self.scheduler.add_job(
            self._heartbeat,
            trigger=IntervalTrigger(seconds=self.heartbeat_seconds),
            id=HEARTBEAT_JOB_ID,
            name="keepalive",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )

    def _disable_heartbeat(self):
        if self.scheduler is None:
            return
        try:
            self.scheduler.remove_job(HEARTBEAT_JOB_ID)
        except JobLookupError:
            pass

    async def _heartbeat(self):
        # Liveness tick only; probing is driven by the cycle job.
        self.heartbeats += 1
        logger.debug("heartbeat", state=self.state)
