"""HTTP command surface for the probe service."""

from __future__ import annotations

import time
from typing import Any

import structlog
from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.responses import Response

from loadprobe.coordinator import ProbeCoordinator
from loadprobe.reporting.csv_export import logs_to_csv
from loadprobe.schema import CommandRequest, CommandResponse, SettingsUpdate
from loadprobe.storage.kv_store import KEY_INTERVAL_SECONDS, KEY_TARGET_URL

logger = structlog.get_logger(__name__)


def create_app(coordinator: ProbeCoordinator | None = None) -> FastAPI:
    app = FastAPI(title="Load Probe", version="0.1.0")
    app.state.coordinator = coordinator or ProbeCoordinator()

    @app.on_event("startup")
    async def _startup() -> None:
        await app.state.coordinator.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await app.state.coordinator.stop()

    def _coordinator() -> ProbeCoordinator:
        return app.state.coordinator

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"ok": True, "ts": time.time()}

    @app.post("/commands", response_model=CommandResponse)
    async def command(req: CommandRequest, background_tasks: BackgroundTasks) -> CommandResponse:
        coord = _coordinator()
        if req.action == "start":
            min_interval = coord.config.min_interval_seconds
            if req.interval_seconds is None or req.interval_seconds < min_interval:
                raise HTTPException(status_code=422, detail=f"intervalSeconds must be >= {min_interval:g}")
            await coord.scheduler.start(req.interval_seconds)
        elif req.action == "stop":
            await coord.scheduler.stop()
        else:
            background_tasks.add_task(coord.scheduler.run_now)
        logger.info("Command accepted", action=req.action)
        return CommandResponse(ok=True)

    @app.get("/status")
    async def status() -> dict[str, Any]:
        return await _coordinator().scheduler.status()

    @app.get("/settings")
    async def get_settings() -> dict[str, Any]:
        data = await _coordinator().store.get(KEY_TARGET_URL, KEY_INTERVAL_SECONDS)
        return {"targetUrl": data.get(KEY_TARGET_URL) or "", "intervalSeconds": data.get(KEY_INTERVAL_SECONDS)}

    @app.put("/settings")
    async def put_settings(req: SettingsUpdate) -> dict[str, Any]:
        coord = _coordinator()
        updates: dict[str, Any] = {}
        if req.target_url is not None:
            updates[KEY_TARGET_URL] = req.target_url.strip()
        if req.interval_seconds is not None:
            if req.interval_seconds < coord.config.min_interval_seconds:
                raise HTTPException(
                    status_code=422,
                    detail=f"intervalSeconds must be >= {coord.config.min_interval_seconds:g}",
                )
            # Takes effect on the next re-arm, not on the pending cycle.
            updates[KEY_INTERVAL_SECONDS] = req.interval_seconds
        if updates:
            await coord.store.set(**updates)
        return {"ok": True, **updates}

    @app.get("/logs")
    async def get_logs() -> dict[str, Any]:
        entries = await _coordinator().log_store.entries()
        return {"entries": [e.to_dict() for e in entries]}

    @app.delete("/logs")
    async def clear_logs() -> dict[str, Any]:
        await _coordinator().log_store.clear()
        return {"ok": True}

    @app.get("/logs.csv")
    async def export_logs() -> Response:
        entries = await _coordinator().log_store.entries()
        return Response(
            content=logs_to_csv(entries),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="loadprobe-export.csv"'},
        )

    return app
