"""Subjects — hot streams fed imperatively.

``Subject`` multicasts whatever is sent to it.  ``ValueSubject`` also holds
a current value and replays it to every new subscriber, which is what a
pipeline exposes as observable state: readers take ``.value``, derived
pipelines subscribe.

Thread Safety:
    The subscriber set is guarded by a ``threading.Lock`` and snapshotted
    before delivery, so subscribing or cancelling during a send is safe.
    Sends themselves are expected to happen on one publish context.

"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

from tide.stream.core import Stream

if TYPE_CHECKING:
    from tide.stream.core import Sink


class Subject[T](Stream[T]):
    """A stream that forwards ``send`` calls to every current subscriber."""

    __slots__ = ("_error", "_lock", "_sinks", "_terminated")

    def __init__(self) -> None:
        super().__init__(self._attach)
        self._sinks: list[Sink[T]] = []
        self._lock = threading.Lock()
        self._terminated = False
        self._error: BaseException | None = None

    @property
    def subscriber_count(self) -> int:
        """Number of live subscribers."""
        with self._lock:
            return sum(1 for sink in self._sinks if not sink.closed)

    @property
    def terminated(self) -> bool:
        return self._terminated

    def send(self, value: T) -> None:
        """Deliver ``value`` to every subscriber.  Ignored once terminated.

        A subscriber whose handler raises is failed with that exception and
        detached; the others still receive ``value``.
        """
        for sink in self._snapshot():
            try:
                sink.send(value)
            except Exception as exc:
                sink.fail(exc)

    def send_error(self, exc: BaseException) -> None:
        """Terminate every subscriber with ``exc``."""
        with self._lock:
            if self._terminated:
                return
            self._terminated = True
            self._error = exc
            sinks, self._sinks = self._sinks, []
        for sink in sinks:
            sink.fail(exc)

    def send_complete(self) -> None:
        """Complete every subscriber."""
        with self._lock:
            if self._terminated:
                return
            self._terminated = True
            sinks, self._sinks = self._sinks, []
        for sink in sinks:
            sink.complete()

    def _snapshot(self) -> tuple[Sink[T], ...]:
        with self._lock:
            if self._terminated:
                return ()
            self._sinks = [sink for sink in self._sinks if not sink.closed]
            return tuple(self._sinks)

    def _attach(self, sink: Sink[T]) -> None:
        with self._lock:
            terminated = self._terminated
            if not terminated:
                self._sinks.append(sink)
        if terminated:
            self._replay_terminal(sink)
            return
        sink.subscription.add(lambda: self._detach(sink))
        self._on_attach(sink)

    def _detach(self, sink: Sink[T]) -> None:
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    def _replay_terminal(self, sink: Sink[T]) -> None:
        if self._error is not None:
            sink.fail(self._error)
        else:
            sink.complete()

    def _on_attach(self, sink: Sink[T]) -> None:
        """Hook for subclasses that greet new subscribers."""


class ValueSubject[T](Subject[T]):
    """A subject with a current value, replayed to each new subscriber.

    Every ``send`` stores the value and emits it, even when it equals the
    previous one.

    Args:
        initial: The value held before the first ``send``.

    """

    __slots__ = ("_value",)

    def __init__(self, initial: T) -> None:
        super().__init__()
        self._value = initial

    @property
    def value(self) -> T:
        """The most recently sent value."""
        return self._value

    def send(self, value: T) -> None:
        if self._terminated:
            return
        self._value = value
        super().send(value)

    def _on_attach(self, sink: Sink[Any]) -> None:
        sink.send(self._value)
