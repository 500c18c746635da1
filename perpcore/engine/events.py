"""
Engine notifications.

Events are published after an invocation commits.  Delivery is best effort:
a failing sink never aborts or rolls back the operation that produced it.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol


class EventSink(Protocol):
    """Protocol that notification sinks must implement."""

    def publish(self, topic: str, payload: Dict[str, Any]) -> None: ...


@dataclass(frozen=True)
class PerpEvent:
    """A single published notification."""
    topic: str
    payload: Dict[str, Any]
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.topic,
            "payload": dict(self.payload),
            "timestamp": self.timestamp,
        }


class MemoryEventSink:
    """Ordered in-memory event log."""

    def __init__(self, max_events: Optional[int] = None) -> None:
        self.max_events = max_events
        self._events: List[PerpEvent] = []

    def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        self._events.append(PerpEvent(topic=topic, payload=dict(payload)))
        if self.max_events is not None and len(self._events) > self.max_events:
            del self._events[: len(self._events) - self.max_events]

    @property
    def events(self) -> List[PerpEvent]:
        return list(self._events)

    def by_topic(self, topic: str) -> List[PerpEvent]:
        return [e for e in self._events if e.topic == topic]

    def clear(self) -> None:
        self._events.clear()
