"""Scheduler module for recurring probes."""

from .probe_scheduler import ProbeScheduler

__all__ = ["ProbeScheduler"]
