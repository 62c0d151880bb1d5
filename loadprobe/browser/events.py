from __future__ import annotations

import itertools
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

import structlog

logger = structlog.get_logger(__name__)


class SignalKind(str, Enum):
    NAVIGATION_STATE_CHANGED = "navigation_state_changed"
    DOWNLOAD_CREATED = "download_created"
    DOWNLOAD_STATE_CHANGED = "download_state_changed"


# Navigation status values
NAV_LOADING = "loading"
NAV_COMPLETE = "complete"
NAV_FAILED = "failed"

# Download state values
DOWNLOAD_IN_PROGRESS = "in_progress"
DOWNLOAD_COMPLETE = "complete"
DOWNLOAD_INTERRUPTED = "interrupted"


@dataclass(frozen=True)
class NavigationStateChanged:
    context_id: str
    status: str  # loading|complete|failed
    error: str | None = None


@dataclass(frozen=True)
class DownloadCreated:
    download_id: str
    url: str | None = None


@dataclass(frozen=True)
class DownloadStateChanged:
    download_id: str
    state: str  # in_progress|complete|interrupted
    error: str | None = None


Signal = Any
Callback = Callable[[Signal], None]


@dataclass(frozen=True)
class Subscription:
    kind: SignalKind
    token: int


class EventBus:
    """Synchronous fan-out of browser signals to subscribers.

    Callbacks run inline on ``emit``; they are expected to be cheap (for
    example pushing onto an asyncio queue).
    """

    def __init__(self) -> None:
        self._subscribers: dict[SignalKind, dict[int, Callback]] = {kind: {} for kind in SignalKind}
        self._tokens = itertools.count(1)

    def subscribe(self, kind: SignalKind, callback: Callback) -> Subscription:
        token = next(self._tokens)
        self._subscribers[kind][token] = callback
        return Subscription(kind=kind, token=token)

    def unsubscribe(self, subscription: Subscription) -> None:
        self._subscribers[subscription.kind].pop(subscription.token, None)

    def subscriber_count(self, kind: SignalKind | None = None) -> int:
        if kind is not None:
            return len(self._subscribers[kind])
        return sum(len(subs) for subs in self._subscribers.values())

    def emit(self, kind: SignalKind, signal: Signal) -> None:
        # Copy so a callback may unsubscribe during delivery.
        for callback in list(self._subscribers[kind].values()):
            try:
                callback(signal)
            except Exception as e:
                logger.error("Signal subscriber failed", kind=kind.value, error=str(e))
