from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class CommandRequest(BaseModel):
    action: Literal["start", "stop", "runNow"]
    interval_seconds: float | None = Field(None, alias="intervalSeconds", gt=0)


class CommandResponse(BaseModel):
    ok: bool = True


class SettingsUpdate(BaseModel):
    target_url: str | None = Field(None, alias="targetUrl", max_length=4000)
    interval_seconds: float | None = Field(None, alias="intervalSeconds", gt=0)
