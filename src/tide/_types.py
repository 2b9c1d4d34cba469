"""Shared type definitions for tide."""

from collections.abc import Callable
from typing import Any, Literal

# Fetch target location
type Url = str

# Zero-argument teardown / scheduled action
type Action = Callable[[], None]

# Subscriber callbacks
type ErrorHandler = Callable[[BaseException], None]
type CompleteHandler = Callable[[], None]

# Name of an owned pipeline ("posts", "composite")
type PipelineName = str

# How a fetch attempt ended
type FetchOutcome = Literal["finished", "failed", "cancelled"]

# Icon a rendering layer shows next to the text field
type ValidityIcon = Literal["none", "xmark", "checkmark"]
