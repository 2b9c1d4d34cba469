"""Observability — structured events recorded by the pipelines.

Quick Start:
    >>> from tide.observability import StackCollector, EventLog
    >>> log = EventLog()
    >>> collector = StackCollector(log)
    >>> # Pass collector to PostsFeed / CompositePipeline

"""

from tide.observability.collector import StackCollector
from tide.observability.events import (
    FetchCompleted,
    FetchStarted,
    PipelineLifecycle,
    StackEvent,
    ValuePublished,
    now_ns,
)
from tide.observability.log import EventLog

__all__ = [
    "EventLog",
    "FetchCompleted",
    "FetchStarted",
    "PipelineLifecycle",
    "StackCollector",
    "StackEvent",
    "ValuePublished",
    "now_ns",
]
