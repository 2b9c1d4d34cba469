"""Composite pipeline — timer, debounced text validity, and a combined gate."""

from tide.composite.pipeline import (
    CompositePipeline,
    CompositeSnapshot,
    TimerState,
    validity_icon,
)

__all__ = [
    "CompositePipeline",
    "CompositeSnapshot",
    "TimerState",
    "validity_icon",
]
