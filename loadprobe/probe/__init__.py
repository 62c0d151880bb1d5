"""Probe execution: outcome detection and the single-flight runner."""

from .detector import OutcomeRaceDetector
from .runner import ProbeRunner

__all__ = ["OutcomeRaceDetector", "ProbeRunner"]
