from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Generic, List, Optional, Type, TypeVar

import structlog

logger = structlog.get_logger("events")

E = TypeVar("E")


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ApiErrorEvent:
    """A client call that did not produce usable data."""

    method: str
    path: str
    status_code: Optional[int]
    message: str
    error_type: Optional[str] = None
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class ProfileUpdatedEvent:
    user_id: int
    name: Optional[str] = None
    lastname: Optional[str] = None
    avatar: Optional[str] = None
    occurred_at: datetime = field(default_factory=_now)


class EventChannel(Generic[E]):
    """In-process publish/subscribe channel carrying exactly one event type."""

    def __init__(self, event_type: Type[E]) -> None:
        self.event_type = event_type
        self._handlers: List[Callable[[E], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: Callable[[E], None]) -> Callable[[], None]:
        """Register a handler; returns a callable that unsubscribes it."""
        with self._lock:
            self._handlers.append(handler)

        def _unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return _unsubscribe

    def publish(self, event: E) -> int:
        if not isinstance(event, self.event_type):
            raise TypeError(
                f"{type(event).__name__} published on a {self.event_type.__name__} channel"
            )
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                # logged, not propagated
                logger.exception("events.handler_failed", event_type=self.event_type.__name__)
        return len(handlers)


api_errors: EventChannel[ApiErrorEvent] = EventChannel(ApiErrorEvent)
profile_updates: EventChannel[ProfileUpdatedEvent] = EventChannel(ProfileUpdatedEvent)
