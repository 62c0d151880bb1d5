"""Probe failure taxonomy.

Every error carries the outcome type it is recorded under, so the probe runner
can turn any of them into a failed Outcome without inspecting the class.
"""

from __future__ import annotations

from loadprobe.models import OutcomeType


class ProbeError(Exception):
    outcome_type: OutcomeType = OutcomeType.NONE
    default_message = "probe failed"

    def __init__(self, message: str | None = None):
        self.message = str(message or self.default_message)
        super().__init__(self.message)


class ConfigurationError(ProbeError):
    default_message = "no url configured"


class NavigationError(ProbeError):
    default_message = "navigation failed"


class DownloadInterruptedError(ProbeError):
    outcome_type = OutcomeType.DOWNLOAD
    default_message = "download interrupted"


class ProbeTimeoutError(ProbeError):
    default_message = "timeout"
