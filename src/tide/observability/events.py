"""Unified event model for pipeline observability.

Defines event types for the posts feed and the composite pipeline.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.

"""

import time
from dataclasses import dataclass
from typing import Literal

from tide._types import FetchOutcome, PipelineName, Url

# ---------------------------------------------------------------------------
# Fetch events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FetchStarted:
    """A posts request was issued.

    Attributes:
        url: Requested location.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    url: Url
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class FetchCompleted:
    """A fetch attempt ended.

    Attributes:
        url: Requested location.
        outcome: ``finished`` (posts published), ``failed``, or ``cancelled``.
        error: Error message when the attempt failed.
        posts: Number of posts published (0 unless finished).
        duration_ms: Time from request to outcome in milliseconds.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    url: Url
    outcome: FetchOutcome
    error: str | None
    posts: int
    duration_ms: float
    timestamp_ns: int


# ---------------------------------------------------------------------------
# State events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ValuePublished:
    """A pipeline published a new value for an observed field.

    Attributes:
        pipeline: Owning pipeline name.
        field: Published field (``count``, ``show_button``...).
        value: ``repr`` of the published value.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    pipeline: PipelineName
    field: str
    value: str
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class PipelineLifecycle:
    """A pipeline started or was torn down.

    Attributes:
        pipeline: Pipeline name.
        transition: ``started`` or ``cancelled``.
        subscriptions: Live subscriptions at the time of the transition.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    pipeline: PipelineName
    transition: Literal["started", "cancelled"]
    subscriptions: int
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

type StackEvent = FetchStarted | FetchCompleted | ValuePublished | PipelineLifecycle


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
