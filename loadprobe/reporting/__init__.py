"""Reporting module for exporting probe outcomes."""

from .csv_export import logs_to_csv

__all__ = ["logs_to_csv"]
