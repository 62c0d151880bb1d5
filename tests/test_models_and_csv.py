from __future__ import annotations

from datetime import datetime, timezone

from loadprobe.errors import (
    ConfigurationError,
    DownloadInterruptedError,
    NavigationError,
    ProbeTimeoutError,
)
from loadprobe.models import Outcome, OutcomeType, SchedulerState
from loadprobe.reporting.csv_export import CSV_COLUMNS, logs_to_csv, outcome_row


def test_error_taxonomy_maps_to_outcome_types() -> None:
    assert Outcome.from_error(ConfigurationError(), 0).type == OutcomeType.NONE
    assert Outcome.from_error(NavigationError("crashed"), 10).type == OutcomeType.NONE
    assert Outcome.from_error(ProbeTimeoutError(), 10).error == "timeout"

    interrupted = Outcome.from_error(DownloadInterruptedError("FILE_NO_SPACE"), 10)
    assert interrupted.type == OutcomeType.DOWNLOAD
    assert interrupted.error == "FILE_NO_SPACE"
    assert interrupted.success is False


def test_foreign_exception_becomes_none_outcome() -> None:
    outcome = Outcome.from_error(RuntimeError("boom"), -5)

    assert outcome.type == OutcomeType.NONE
    assert outcome.error == "boom"
    assert outcome.duration_ms == 0


def test_outcome_dict_uses_camel_case_and_epoch_ms() -> None:
    ts = datetime(2024, 5, 1, 12, 0, 0, 250000, tzinfo=timezone.utc)
    outcome = Outcome(success=True, type=OutcomeType.DOWNLOAD, duration_ms=3400, file_size=2_048_000, timestamp=ts)

    assert outcome.to_dict() == {
        "timestamp": 1714564800250,
        "success": True,
        "type": "download",
        "durationMs": 3400,
        "fileSize": 2_048_000,
        "error": None,
    }


def test_legacy_dash_type_decodes_as_none() -> None:
    outcome = Outcome.from_dict({"success": False, "type": "-", "durationMs": "0", "error": "no url configured"})

    assert outcome.type == OutcomeType.NONE
    assert outcome.error == "no url configured"
    assert outcome.file_size == 0


def test_scheduler_state_from_store() -> None:
    assert SchedulerState.from_store({}) == SchedulerState(is_running=False, interval_seconds=None)
    state = SchedulerState.from_store({"isRunning": True, "intervalSeconds": "60"})
    assert state.interval_seconds == 60.0
    assert state.is_running is True
    assert SchedulerState.from_store({"isRunning": True, "intervalSeconds": "soon"}).interval_seconds is None


def test_csv_has_header_and_one_row_per_outcome() -> None:
    ts = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
    outcomes = [
        Outcome(success=True, type=OutcomeType.PAGE, duration_ms=1200, timestamp=ts),
        Outcome(success=False, type=OutcomeType.NONE, duration_ms=0, error="timeout", timestamp=ts),
    ]

    lines = logs_to_csv(outcomes).splitlines()

    assert lines[0] == ",".join(CSV_COLUMNS)
    assert lines[1] == "2024-05-01T12:00:00.000Z,1200,0,page,true,"
    assert lines[2] == "2024-05-01T12:00:00.000Z,0,0,none,false,timeout"


def test_csv_quotes_errors_with_commas() -> None:
    outcome = Outcome(success=False, type=OutcomeType.NONE, duration_ms=5, error="Error: a, b")

    assert outcome_row(outcome)[-1] == "Error: a, b"
    assert logs_to_csv([outcome]).splitlines()[1].endswith(',"Error: a, b"')


def test_csv_of_empty_log_is_header_only() -> None:
    assert logs_to_csv([]) == ",".join(CSV_COLUMNS) + "\n"
