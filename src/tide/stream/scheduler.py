"""Schedulers — the clock and the publish context for streams.

A scheduler answers two questions for the stream operators: what time is it,
and where does a deferred action run.  ``LoopScheduler`` runs everything on an
asyncio event loop, which makes the loop the single serialized publish
context.  ``VirtualScheduler`` keeps its own clock and only moves when told
to, so timer and debounce behaviour can be driven step by step.

Thread Safety:
    ``LoopScheduler.call_soon`` and ``call_later`` may be called from any
    thread; the action always runs on the loop thread.
    ``VirtualScheduler`` is single-threaded.

"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import threading
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from tide._types import Action


class Cancellable(Protocol):
    """Anything with a ``cancel()`` method (asyncio handles included)."""

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Clock plus execution context for deferred stream actions."""

    def now(self) -> float: ...

    def call_soon(self, action: Action) -> Cancellable: ...

    def call_later(self, delay: float, action: Action) -> Cancellable: ...


# ---------------------------------------------------------------------------
# asyncio
# ---------------------------------------------------------------------------


class _ForeignTimerHandle:
    """Timer handle for ``call_later`` requested off the loop thread.

    The real ``TimerHandle`` only exists once the loop has processed the
    request, so cancellation before that point is remembered and honoured.
    """

    __slots__ = ("_cancelled", "_handle", "_lock")

    def __init__(self) -> None:
        self._handle: asyncio.TimerHandle | None = None
        self._cancelled = False
        self._lock = threading.Lock()

    def arm(self, loop: asyncio.AbstractEventLoop, delay: float, action: Action) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._handle = loop.call_later(delay, action)

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()


class LoopScheduler:
    """Scheduler backed by an asyncio event loop.

    Args:
        loop: The loop to run on.  When omitted, the running loop is used;
            outside a running loop it is bound on first use from the loop
            thread.

    """

    __slots__ = ("_loop",)

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """The bound event loop."""
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return self.loop.time()

    def call_soon(self, action: Action) -> Cancellable:
        return self.loop.call_soon_threadsafe(action)

    def call_later(self, delay: float, action: Action) -> Cancellable:
        loop = self.loop
        if self._on_loop_thread(loop):
            return loop.call_later(delay, action)
        handle = _ForeignTimerHandle()
        loop.call_soon_threadsafe(handle.arm, loop, delay, action)
        return handle

    def _on_loop_thread(self, loop: asyncio.AbstractEventLoop) -> bool:
        try:
            return asyncio.get_running_loop() is loop
        except RuntimeError:
            return False


# ---------------------------------------------------------------------------
# Virtual time
# ---------------------------------------------------------------------------


class _VirtualHandle:
    __slots__ = ("cancelled",)

    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualScheduler:
    """Scheduler with a manually advanced clock.

    Actions run only inside ``advance_by`` / ``advance_to``, in due-time
    order; actions due at the same instant run in the order they were
    scheduled.  An action scheduled while advancing runs in the same advance
    if it falls due before the target time.

    Usage::

        scheduler = VirtualScheduler()
        stream.debounce(0.5, scheduler).subscribe(seen.append)
        scheduler.advance_by(0.5)

    """

    __slots__ = ("_now", "_queue", "_seq")

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[tuple[float, int, _VirtualHandle, Action]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of scheduled actions that have not run or been cancelled."""
        return sum(1 for _, _, handle, _ in self._queue if not handle.cancelled)

    def call_soon(self, action: Action) -> Cancellable:
        return self._schedule(self._now, action)

    def call_later(self, delay: float, action: Action) -> Cancellable:
        return self._schedule(self._now + max(0.0, delay), action)

    def advance_by(self, delta: float) -> None:
        """Move the clock forward by ``delta``, running every action due."""
        if delta < 0:
            msg = f"cannot move virtual time backwards (delta={delta})"
            raise ValueError(msg)
        self.advance_to(self._now + delta)

    def advance_to(self, target: float) -> None:
        """Move the clock to ``target``, running every action due."""
        if target < self._now:
            msg = f"cannot move virtual time backwards ({self._now} -> {target})"
            raise ValueError(msg)
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, action = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = due
            action()
        self._now = target

    def _schedule(self, due: float, action: Action) -> _VirtualHandle:
        handle = _VirtualHandle()
        heapq.heappush(self._queue, (due, next(self._seq), handle, action))
        return handle
