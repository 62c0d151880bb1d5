"""CSV export of the timing log."""

from __future__ import annotations

import csv
import io
from datetime import timezone
from typing import Iterable

from loadprobe.models import Outcome

CSV_COLUMNS = ["timestamp", "durationMs", "fileSize", "type", "success", "error"]


def _iso(outcome: Outcome) -> str:
    ts = outcome.timestamp.astimezone(timezone.utc)
    return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def outcome_row(outcome: Outcome) -> list[str]:
    return [
        _iso(outcome),
        str(outcome.duration_ms),
        str(outcome.file_size),
        outcome.type.value,
        "true" if outcome.success else "false",
        outcome.error or "",
    ]


def logs_to_csv(outcomes: Iterable[Outcome]) -> str:
    """Render outcomes (newest first, as stored) to CSV text with a header row."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for outcome in outcomes:
        writer.writerow(outcome_row(outcome))
    return buf.getvalue()
