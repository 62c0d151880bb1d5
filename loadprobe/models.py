from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class OutcomeType(str, Enum):
    PAGE = "page"
    DOWNLOAD = "download"
    NONE = "none"

    @classmethod
    def coerce(cls, raw: Any) -> "OutcomeType":
        if isinstance(raw, cls):
            return raw
        # Older logs used "-" for pre-navigation failures.
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            return cls.NONE


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_epoch_ms(ts: datetime) -> int:
    return int(round(ts.timestamp() * 1000))


def _from_epoch_ms(raw: Any) -> datetime:
    try:
        return datetime.fromtimestamp(float(raw) / 1000.0, tz=timezone.utc)
    except Exception:
        return datetime.fromtimestamp(0, tz=timezone.utc)


@dataclass(frozen=True)
class Outcome:
    """Result of a single probe.

    Persisted with camelCase keys and the timestamp in epoch milliseconds.
    """

    success: bool
    type: OutcomeType
    duration_ms: int
    file_size: int = 0
    error: str | None = None
    timestamp: datetime = field(default_factory=_utcnow)

    @classmethod
    def page(cls, duration_ms: int) -> "Outcome":
        return cls(success=True, type=OutcomeType.PAGE, duration_ms=int(duration_ms))

    @classmethod
    def download(cls, duration_ms: int, file_size: int | None) -> "Outcome":
        return cls(
            success=True,
            type=OutcomeType.DOWNLOAD,
            duration_ms=int(duration_ms),
            file_size=int(file_size or 0),
        )

    @classmethod
    def from_error(cls, exc: BaseException, duration_ms: int) -> "Outcome":
        """Convert a probe failure into a failed Outcome.

        ProbeError subclasses decide their own outcome type; anything else is a
        failure before navigation produced a signal and is recorded as ``none``.
        """
        message = getattr(exc, "message", None) or str(exc) or type(exc).__name__
        return cls(
            success=False,
            type=OutcomeType.coerce(getattr(exc, "outcome_type", None)),
            duration_ms=max(0, int(duration_ms)),
            file_size=0,
            error=message,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": _to_epoch_ms(self.timestamp),
            "success": self.success,
            "type": self.type.value,
            "durationMs": self.duration_ms,
            "fileSize": self.file_size,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Outcome":
        """Best-effort decode of a persisted log entry."""
        try:
            duration_ms = int(raw.get("durationMs") or 0)
        except Exception:
            duration_ms = 0
        try:
            file_size = int(raw.get("fileSize") or 0)
        except Exception:
            file_size = 0
        error = raw.get("error")
        return cls(
            success=bool(raw.get("success")),
            type=OutcomeType.coerce(raw.get("type")),
            duration_ms=duration_ms,
            file_size=file_size,
            error=str(error) if error else None,
            timestamp=_from_epoch_ms(raw.get("timestamp")),
        )


@dataclass(frozen=True)
class SchedulerState:
    is_running: bool = False
    interval_seconds: float | None = None

    @classmethod
    def from_store(cls, raw: dict[str, Any]) -> "SchedulerState":
        interval = raw.get("intervalSeconds")
        try:
            interval = float(interval) if interval is not None else None
        except (TypeError, ValueError):
            interval = None
        return cls(is_running=bool(raw.get("isRunning")), interval_seconds=interval)
