"""loadprobe: background page/download load-time probe."""

from .models import Outcome, OutcomeType, SchedulerState

__all__ = ["Outcome", "OutcomeType", "SchedulerState"]
