"""Stream core — cold streams, sinks, and cancellation handles.

A ``Stream`` wraps a producer function.  Every ``subscribe()`` runs the
producer with a fresh ``Sink`` and hands back the sink's ``Subscription``.
The producer pushes values through the sink and registers its teardown
(timers, upstream subscriptions, tasks) on the subscription, so a single
``cancel()`` releases the whole chain.

Delivery rules enforced by the sink:

- nothing is delivered after ``cancel()``
- nothing is delivered after an error or completion
- an error or completion releases the producer's resources

"""

from __future__ import annotations

import sys
import threading
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from tide._types import Action, CompleteHandler, ErrorHandler
    from tide.stream.scheduler import Scheduler


class Subscription:
    """Cancellation handle for one subscriber.

    ``cancel()`` is idempotent and safe from any thread, before or after the
    stream has terminated.  Teardowns run once, most recently added first.
    """

    __slots__ = ("_cancelled", "_lock", "_teardowns")

    def __init__(self) -> None:
        self._teardowns: list[Action] = []
        self._cancelled = False
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        """Whether ``cancel()`` has been called."""
        return self._cancelled

    def add(self, teardown: Action) -> None:
        """Register a teardown; runs immediately if already cancelled."""
        with self._lock:
            if not self._cancelled:
                self._teardowns.append(teardown)
                return
        teardown()

    def cancel(self) -> None:
        """Stop delivery and release everything the producer holds."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            teardowns, self._teardowns = self._teardowns, []
        for teardown in reversed(teardowns):
            teardown()


class SubscriptionSet:
    """The set of live subscriptions owned by one pipeline.

    Cancelling the set cancels every member.  A subscription added after
    the set was cancelled is cancelled on the spot, so nothing outlives its
    owner.  Usable as a context manager::

        with SubscriptionSet() as subs:
            subs.add(stream.subscribe(handler))

    """

    __slots__ = ("_cancelled", "_lock", "_members")

    def __init__(self) -> None:
        self._members: list[Subscription] = []
        self._cancelled = False
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def add(self, subscription: Subscription) -> Subscription:
        """Take ownership of ``subscription`` and return it."""
        with self._lock:
            if not self._cancelled:
                # Drop members that were cancelled individually.
                self._members = [s for s in self._members if not s.cancelled]
                self._members.append(subscription)
                return subscription
        subscription.cancel()
        return subscription

    def cancel(self) -> None:
        """Cancel every member.  Safe to call repeatedly."""
        with self._lock:
            self._cancelled = True
            members, self._members = self._members, []
        for subscription in members:
            subscription.cancel()

    def reset(self) -> None:
        """Cancel every member and accept new ones again."""
        self.cancel()
        with self._lock:
            self._cancelled = False

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for s in self._members if not s.cancelled)

    def __enter__(self) -> SubscriptionSet:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cancel()


def _report_unhandled(exc: BaseException) -> None:
    print(f"  Unhandled stream error: {exc!r}", file=sys.stderr)


class Sink[T]:
    """Producer-side view of one subscriber."""

    __slots__ = ("_done", "_on_complete", "_on_error", "_on_value", "subscription")

    def __init__(
        self,
        on_value: Callable[[T], Any] | None,
        on_error: ErrorHandler | None,
        on_complete: CompleteHandler | None,
        subscription: Subscription,
    ) -> None:
        self._on_value = on_value
        self._on_error = on_error
        self._on_complete = on_complete
        self._done = False
        self.subscription = subscription

    @property
    def closed(self) -> bool:
        """True once the subscriber can no longer receive events."""
        return self._done or self.subscription.cancelled

    def send(self, value: T) -> None:
        if self.closed:
            return
        if self._on_value is not None:
            self._on_value(value)

    def fail(self, exc: BaseException) -> None:
        if self.closed:
            return
        self._done = True
        try:
            if self._on_error is not None:
                self._on_error(exc)
            else:
                _report_unhandled(exc)
        finally:
            self.subscription.cancel()

    def complete(self) -> None:
        if self.closed:
            return
        self._done = True
        try:
            if self._on_complete is not None:
                self._on_complete()
        finally:
            self.subscription.cancel()


class Stream[T]:
    """A cold, cancellable sequence of values ending in an error or completion.

    Args:
        producer: Called with a ``Sink`` on every subscribe.  Registers its
            teardown on ``sink.subscription``.  An exception raised by the
            producer becomes the stream's error.

    """

    __slots__ = ("_producer",)

    def __init__(self, producer: Callable[[Sink[T]], None]) -> None:
        self._producer = producer

    def subscribe(
        self,
        on_value: Callable[[T], Any] | None = None,
        on_error: ErrorHandler | None = None,
        on_complete: CompleteHandler | None = None,
    ) -> Subscription:
        """Start the stream for one subscriber and return its cancellation handle."""
        subscription = Subscription()
        sink = Sink(on_value, on_error, on_complete, subscription)
        try:
            self._producer(sink)
        except Exception as exc:
            sink.fail(exc)
        return subscription

    # ----- Operators -----

    def map[U](self, transform: Callable[[T], U]) -> Stream[U]:
        """Apply a pure, non-failing ``transform`` to every value."""
        from tide.stream.operators import map_values

        return map_values(self, transform)

    def try_map[U](self, transform: Callable[[T], U]) -> Stream[U]:
        """Apply ``transform``; an exception it raises terminates the stream."""
        from tide.stream.operators import try_map_values

        return try_map_values(self, transform)

    def debounce(self, delay: float, scheduler: Scheduler) -> Stream[T]:
        """Emit a value only after ``delay`` without a newer one."""
        from tide.stream.operators import debounce

        return debounce(self, delay, scheduler)

    def combine_latest[U](self, other: Stream[U]) -> Stream[tuple[T, U]]:
        """Pair each value with the latest value of ``other``."""
        from tide.stream.operators import combine_latest

        return combine_latest(self, other)

    def decode(self, model: Any, *, many: bool = False) -> Stream[Any]:
        """Parse JSON payloads into ``model`` instances."""
        from tide.stream.operators import decode

        return decode(self, model, many=many)

    def receive_on(self, scheduler: Scheduler) -> Stream[T]:
        """Deliver every event through ``scheduler``."""
        from tide.stream.operators import receive_on

        return receive_on(self, scheduler)
