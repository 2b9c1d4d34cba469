"""Stream layer — composable, cancellable value streams.

Streams are built from a producer, transformed with operators, and
consumed with ``subscribe``, which returns a cancellation handle::

    from tide.stream import ValueSubject, VirtualScheduler

    scheduler = VirtualScheduler()
    text = ValueSubject("")
    valid = text.debounce(0.5, scheduler).map(lambda t: len(t) > 3)
    subscription = valid.subscribe(print)
"""

from tide.stream.core import Sink, Stream, Subscription, SubscriptionSet
from tide.stream.operators import (
    Decodable,
    combine_latest,
    decode_payload,
    from_awaitable,
    interval,
)
from tide.stream.scheduler import LoopScheduler, Scheduler, VirtualScheduler
from tide.stream.subjects import Subject, ValueSubject

__all__ = [
    "Decodable",
    "LoopScheduler",
    "Scheduler",
    "Sink",
    "Stream",
    "Subject",
    "Subscription",
    "SubscriptionSet",
    "ValueSubject",
    "VirtualScheduler",
    "combine_latest",
    "decode_payload",
    "from_awaitable",
    "interval",
]
