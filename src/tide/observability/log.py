"""Event log — the bounded record a collector writes into.

Holds the most recent ``StackEvent`` objects, oldest dropped first, and
answers the questions the pipelines raise when debugging them: which
values did a field go through, how did the fetches end, what happened
since a given instant.

Thread Safety:
    Every method takes the log's ``threading.Lock``.  Fetch callbacks and
    publish deliveries may record from different threads.

"""

import threading
from collections import Counter, deque

from tide._types import FetchOutcome, PipelineName, Url
from tide.observability.events import FetchCompleted, StackEvent, ValuePublished


class EventLog:
    """Bounded, queryable store of pipeline events.

    Args:
        max_events: How many events to keep before the oldest are dropped.

    """

    __slots__ = ("_events", "_lock", "_max_events")

    def __init__(self, max_events: int = 10_000) -> None:
        self._max_events = max_events
        self._events: deque[StackEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    @property
    def max_events(self) -> int:
        return self._max_events

    def append(self, event: StackEvent) -> None:
        with self._lock:
            self._events.append(event)

    def query(
        self,
        *,
        event_type: type | None = None,
        since_ns: int = 0,
        pipeline: PipelineName | None = None,
        url: Url | None = None,
        limit: int = 100,
    ) -> list[StackEvent]:
        """Matching events, newest first.

        Args:
            event_type: Keep only instances of this event class.
            since_ns: Keep only events stamped at or after this instant.
            pipeline: Keep only publish and lifecycle events of this pipeline.
            url: Keep only fetch events for this location.
            limit: Stop after this many matches.

        """
        with self._lock:
            snapshot = list(self._events)

        matches: list[StackEvent] = []
        for event in reversed(snapshot):
            if len(matches) >= limit:
                break
            if event_type is not None and not isinstance(event, event_type):
                continue
            if event.timestamp_ns < since_ns:
                continue
            if pipeline is not None and getattr(event, "pipeline", None) != pipeline:
                continue
            if url is not None and getattr(event, "url", None) != url:
                continue
            matches.append(event)
        return matches

    def history(self, pipeline: PipelineName, field: str) -> list[str]:
        """Published values of one field, oldest first, as recorded reprs."""
        with self._lock:
            return [
                event.value
                for event in self._events
                if isinstance(event, ValuePublished)
                and event.pipeline == pipeline
                and event.field == field
            ]

    def outcomes(self) -> Counter[FetchOutcome]:
        """How many fetch attempts ended each way."""
        with self._lock:
            return Counter(
                event.outcome for event in self._events if isinstance(event, FetchCompleted)
            )

    def recent(self, n: int = 20) -> list[StackEvent]:
        """The last ``n`` events, oldest first."""
        with self._lock:
            snapshot = list(self._events)
        return snapshot[-n:] if n > 0 else []

    def clear(self) -> int:
        """Drop every event; return how many there were."""
        with self._lock:
            dropped = len(self._events)
            self._events.clear()
        return dropped

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
