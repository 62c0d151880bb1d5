"""Persistence for probe settings, scheduler state and the timing log."""

from .kv_store import JsonFileStore
from .log_store import LogStore

__all__ = ["JsonFileStore", "LogStore"]
