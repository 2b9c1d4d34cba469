"""Stream operators and sources.

Each operator subscribes to its upstream inside the producer of a new
``Stream`` and chains the upstream subscription onto the downstream one,
so cancelling the outermost subscription tears down the whole chain.
"""

from __future__ import annotations

import asyncio
import json
import threading
from typing import TYPE_CHECKING, Any, Protocol, Self

from tide._errors import DecodeError
from tide.stream.core import Stream

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from tide.stream.core import Sink
    from tide.stream.scheduler import Cancellable, Scheduler


class Decodable(Protocol):
    """A type that can be built from one decoded JSON object."""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Self: ...


_MISSING: Any = object()


# ---------------------------------------------------------------------------
# Transforms
# ---------------------------------------------------------------------------


def map_values[T, U](source: Stream[T], transform: Callable[[T], U]) -> Stream[U]:
    def produce(sink: Sink[U]) -> None:
        upstream = source.subscribe(
            lambda value: sink.send(transform(value)),
            sink.fail,
            sink.complete,
        )
        sink.subscription.add(upstream.cancel)

    return Stream(produce)


def try_map_values[T, U](source: Stream[T], transform: Callable[[T], U]) -> Stream[U]:
    def produce(sink: Sink[U]) -> None:
        def on_value(value: T) -> None:
            try:
                result = transform(value)
            except Exception as exc:
                sink.fail(exc)
                return
            sink.send(result)

        upstream = source.subscribe(on_value, sink.fail, sink.complete)
        sink.subscription.add(upstream.cancel)

    return Stream(produce)


def decode(source: Stream[bytes | str], model: type[Decodable], *, many: bool = False) -> Stream[Any]:
    """Parse each JSON payload into ``model`` (or a tuple of them when ``many``)."""
    return try_map_values(source, lambda payload: decode_payload(payload, model, many=many))


def decode_payload(payload: bytes | str, model: type[Decodable], *, many: bool = False) -> Any:
    """Decode one JSON payload.

    Raises:
        DecodeError: If the payload is not JSON or does not match the shape.

    """
    try:
        data = json.loads(payload)
    except (ValueError, TypeError) as exc:
        msg = f"payload is not valid JSON: {exc}"
        raise DecodeError(msg) from exc

    if not many:
        return _decode_one(data, model, None)

    if not isinstance(data, list):
        msg = f"expected a JSON array of {model.__name__}, got {type(data).__name__}"
        raise DecodeError(msg)
    return tuple(_decode_one(item, model, index) for index, item in enumerate(data))


def _decode_one(data: object, model: type[Decodable], index: int | None) -> Any:
    where = "" if index is None else f" at index {index}"
    if not isinstance(data, dict):
        msg = f"expected a JSON object for {model.__name__}{where}, got {type(data).__name__}"
        raise DecodeError(msg)
    try:
        return model.from_mapping(data)
    except DecodeError as exc:
        msg = f"{exc}{where}"
        raise DecodeError(msg) from exc
    except (KeyError, TypeError, ValueError) as exc:
        msg = f"cannot decode {model.__name__}{where}: {exc}"
        raise DecodeError(msg) from exc


# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------


class _DebounceState:
    __slots__ = ("handle", "lock", "pending")

    def __init__(self) -> None:
        self.handle: Cancellable | None = None
        self.pending: Any = _MISSING
        self.lock = threading.Lock()

    def take(self) -> Any:
        """Clear the window and return the pending value (or _MISSING)."""
        with self.lock:
            handle, self.handle = self.handle, None
            value, self.pending = self.pending, _MISSING
        if handle is not None:
            handle.cancel()
        return value


def debounce[T](source: Stream[T], delay: float, scheduler: Scheduler) -> Stream[T]:
    """Emit a value once ``delay`` passes with no newer value.

    Superseded values are discarded.  A value still waiting when the
    upstream completes is emitted before completion; on error or cancel it
    is dropped.
    """
    if delay < 0:
        msg = f"debounce delay must not be negative, got {delay}"
        raise ValueError(msg)

    def produce(sink: Sink[T]) -> None:
        state = _DebounceState()

        def fire(token: object) -> None:
            with state.lock:
                # A newer value re-armed the window after this timer was due.
                if state.pending is _MISSING or state.handle is not token:
                    return
                value, state.pending, state.handle = state.pending, _MISSING, None
            sink.send(value)

        def on_value(value: T) -> None:
            with state.lock:
                previous = state.handle
                state.pending = value
                token = _Token()
                state.handle = token
            if previous is not None:
                previous.cancel()
            token.handle = scheduler.call_later(delay, lambda: fire(token))

        def on_error(exc: BaseException) -> None:
            state.take()
            sink.fail(exc)

        def on_complete() -> None:
            value = state.take()
            if value is not _MISSING:
                sink.send(value)
            sink.complete()

        sink.subscription.add(state.take)
        upstream = source.subscribe(on_value, on_error, on_complete)
        sink.subscription.add(upstream.cancel)

    return Stream(produce)


class _Token:
    """Identity for one debounce window, wrapping the scheduler handle."""

    __slots__ = ("handle",)

    def __init__(self) -> None:
        self.handle: Cancellable | None = None

    def cancel(self) -> None:
        if self.handle is not None:
            self.handle.cancel()


def interval(period: float, scheduler: Scheduler) -> Stream[float]:
    """Emit the scheduler time every ``period``, forever, until cancelled.

    Ticks are due at ``start + n * period`` so late callbacks don't drift
    the schedule.
    """
    if period <= 0:
        msg = f"interval period must be positive, got {period}"
        raise ValueError(msg)

    def produce(sink: Sink[float]) -> None:
        start = scheduler.now()
        ticks = 0
        handle: Cancellable | None = None

        def arm() -> None:
            nonlocal handle, ticks
            ticks += 1
            due = start + ticks * period
            handle = scheduler.call_later(max(0.0, due - scheduler.now()), fire)

        def fire() -> None:
            if sink.closed:
                return
            # Re-arm before delivering.
            arm()
            sink.send(scheduler.now())

        def stop() -> None:
            if handle is not None:
                handle.cancel()

        arm()
        sink.subscription.add(stop)

    return Stream(produce)


# ---------------------------------------------------------------------------
# Combination
# ---------------------------------------------------------------------------


def combine_latest[A, B](first: Stream[A], second: Stream[B]) -> Stream[tuple[A, B]]:
    """Emit ``(a, b)`` whenever either side emits, once both have a value."""

    def produce(sink: Sink[tuple[A, B]]) -> None:
        lock = threading.Lock()
        latest: list[Any] = [_MISSING, _MISSING]
        done = [False, False]

        def on_value(index: int, value: Any) -> None:
            with lock:
                latest[index] = value
                if latest[0] is _MISSING or latest[1] is _MISSING:
                    return
                pair = (latest[0], latest[1])
            sink.send(pair)

        def on_complete(index: int) -> None:
            with lock:
                done[index] = True
                finished = all(done) or latest[index] is _MISSING
            if finished:
                sink.complete()

        for index, source in enumerate((first, second)):
            upstream = source.subscribe(
                lambda value, i=index: on_value(i, value),
                sink.fail,
                lambda i=index: on_complete(i),
            )
            sink.subscription.add(upstream.cancel)

    return Stream(produce)


# ---------------------------------------------------------------------------
# Context hops and async sources
# ---------------------------------------------------------------------------


def receive_on[T](source: Stream[T], scheduler: Scheduler) -> Stream[T]:
    """Re-deliver every event through ``scheduler.call_soon``.

    Order is preserved because ``call_soon`` runs actions FIFO.  The sink
    drops anything that arrives after cancellation.
    """

    def produce(sink: Sink[T]) -> None:
        upstream = source.subscribe(
            lambda value: scheduler.call_soon(lambda: sink.send(value)),
            lambda exc: scheduler.call_soon(lambda: sink.fail(exc)),
            lambda: scheduler.call_soon(sink.complete),
        )
        sink.subscription.add(upstream.cancel)

    return Stream(produce)


def from_awaitable[T](factory: Callable[[], Awaitable[T]]) -> Stream[T]:
    """Run ``factory()`` as a task on subscribe; emit its result, then complete.

    Must be subscribed from a running event loop.  Cancelling the
    subscription cancels the task.
    """

    def produce(sink: Sink[T]) -> None:
        task = asyncio.ensure_future(factory())

        def deliver(done: asyncio.Future[T]) -> None:
            if done.cancelled():
                return
            exc = done.exception()
            if exc is not None:
                sink.fail(exc)
                return
            sink.send(done.result())
            sink.complete()

        task.add_done_callback(deliver)
        sink.subscription.add(task.cancel)

    return Stream(produce)
