"""Stack collector — one place for pipelines to record what they did.

Thread Safety:
    The collector delegates to ``EventLog`` which is internally locked.

"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tide.observability.events import (
    FetchCompleted,
    FetchStarted,
    PipelineLifecycle,
    ValuePublished,
    now_ns,
)
from tide.observability.log import EventLog

if TYPE_CHECKING:
    from typing import Literal

    from tide._types import FetchOutcome, PipelineName, Url
    from tide.config import TideConfig


class StackCollector:
    """Records pipeline events into an ``EventLog``.

    Args:
        log: The EventLog to store events in.

    """

    __slots__ = ("_log",)

    def __init__(self, log: EventLog | None = None) -> None:
        self._log = log if log is not None else EventLog()

    @classmethod
    def from_config(cls, config: TideConfig) -> StackCollector:
        """A collector whose log holds at most ``config.max_events`` events."""
        return cls(EventLog(max_events=config.max_events))

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    # ----- Fetch events -----

    def record_fetch_started(self, url: Url) -> int:
        """Record a request and return its start timestamp."""
        started = now_ns()
        self._log.append(FetchStarted(url=url, timestamp_ns=started))
        return started

    def record_fetch_completed(
        self,
        url: Url,
        outcome: FetchOutcome,
        *,
        started_ns: int = 0,
        error: str | None = None,
        posts: int = 0,
    ) -> None:
        """Record how a fetch attempt ended."""
        ts = now_ns()
        duration_ms = (ts - started_ns) / 1_000_000 if started_ns else 0.0
        self._log.append(
            FetchCompleted(
                url=url,
                outcome=outcome,
                error=error,
                posts=posts,
                duration_ms=duration_ms,
                timestamp_ns=ts,
            )
        )

    # ----- State events -----

    def record_publish(self, pipeline: PipelineName, field: str, value: object) -> None:
        """Record a published value."""
        self._log.append(
            ValuePublished(
                pipeline=pipeline,
                field=field,
                value=repr(value),
                timestamp_ns=now_ns(),
            )
        )

    def record_lifecycle(
        self,
        pipeline: PipelineName,
        transition: Literal["started", "cancelled"],
        *,
        subscriptions: int = 0,
    ) -> None:
        """Record a pipeline start or teardown."""
        self._log.append(
            PipelineLifecycle(
                pipeline=pipeline,
                transition=transition,
                subscriptions=subscriptions,
                timestamp_ns=now_ns(),
            )
        )
