"""Browsing environment adapters: signal bus, host interface, Playwright host."""

from .events import EventBus, SignalKind
from .host import BrowserHost, ContextHandle

__all__ = ["EventBus", "SignalKind", "BrowserHost", "ContextHandle"]
