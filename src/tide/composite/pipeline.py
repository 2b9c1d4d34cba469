"""Composite pipeline — a ticking counter, debounced text validity, and a gate.

Three sub-pipelines run side by side and share one publish scheduler:

    timer      interval(tick_interval)                  -> count += 1
    validity   text.debounce(debounce_delay).map(len > min_text_length)
                                                        -> text_is_valid
    gate       combine_latest(text_is_valid, count)     -> show_button

They start together in ``start()`` and are cancelled together in ``close()``.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from tide._errors import StreamError
from tide.stream.core import SubscriptionSet
from tide.stream.operators import combine_latest, interval
from tide.stream.subjects import ValueSubject

if TYPE_CHECKING:
    from tide._types import ValidityIcon
    from tide.config import TideConfig
    from tide.observability.collector import StackCollector
    from tide.stream.scheduler import Scheduler


class TimerState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True, slots=True)
class CompositeSnapshot:
    """The last published state, shaped for a rendering layer.

    Attributes:
        count: Ticks since start.
        count_label: ``count`` as display text.
        text: Current text input.
        text_is_valid: Debounced validity of the text.
        validity_icon: Icon to show next to the text field.
        show_button: Whether the submit button is enabled.

    """

    count: int
    count_label: str
    text: str
    text_is_valid: bool
    validity_icon: ValidityIcon
    show_button: bool


def validity_icon(text: str, is_valid: bool) -> ValidityIcon:
    """Checkmark for valid text, a cross for non-empty invalid text."""
    if is_valid:
        return "checkmark"
    if text:
        return "xmark"
    return "none"


class CompositePipeline:
    """Owns the counter, text, validity, and gate state.

    State is exposed as ``ValueSubject`` objects: read ``.value`` for the
    last published value, or subscribe to follow changes.  Only deliveries
    on the publish scheduler mutate them.

    Args:
        config: Supplies the tick interval, debounce delay, and thresholds.
        scheduler: Clock and publish context for all three sub-pipelines.
        collector: Optional event collector.

    """

    PIPELINE = "composite"

    def __init__(
        self,
        config: TideConfig,
        *,
        scheduler: Scheduler,
        collector: StackCollector | None = None,
    ) -> None:
        self._config = config
        self._scheduler = scheduler
        self._collector = collector
        self._subscriptions = SubscriptionSet()
        self._state = TimerState.STOPPED

        self.count: ValueSubject[int] = ValueSubject(0)
        self.text: ValueSubject[str] = ValueSubject("")
        self.text_is_valid: ValueSubject[bool] = ValueSubject(False)
        self.show_button: ValueSubject[bool] = ValueSubject(False)

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def subscription_count(self) -> int:
        """Live sub-pipeline subscriptions (3 while running, 0 otherwise)."""
        return len(self._subscriptions)

    def start(self) -> None:
        """Start the timer, validity, and gate sub-pipelines together.

        Raises:
            StreamError: If the pipeline is already running.

        """
        if self._state is TimerState.RUNNING:
            msg = "composite pipeline is already running"
            raise StreamError(msg)

        self._subscriptions.reset()
        self.count.send(0)
        self._state = TimerState.RUNNING

        self._start_timer()
        self._add_text_subscriber()
        self._add_button_subscriber()

        if self._collector is not None:
            self._collector.record_lifecycle(
                self.PIPELINE, "started", subscriptions=len(self._subscriptions),
            )
        if self._config.verbose:
            print(f"  {self.PIPELINE} pipeline started", file=sys.stderr)

    def close(self) -> None:
        """Cancel all three sub-pipelines.  Safe to call repeatedly."""
        if self._state is TimerState.STOPPED:
            return
        live = len(self._subscriptions)
        self._subscriptions.cancel()
        self._state = TimerState.STOPPED
        if self._collector is not None:
            self._collector.record_lifecycle(self.PIPELINE, "cancelled", subscriptions=live)
        if self._config.verbose:
            print(f"  {self.PIPELINE} pipeline cancelled", file=sys.stderr)

    def set_text(self, value: str) -> None:
        """Feed a keystroke event.  Call on the publish context."""
        self.text.send(value)

    def snapshot(self) -> CompositeSnapshot:
        """The last published values, for reading only."""
        count = self.count.value
        text = self.text.value
        is_valid = self.text_is_valid.value
        return CompositeSnapshot(
            count=count,
            count_label=str(count),
            text=text,
            text_is_valid=is_valid,
            validity_icon=validity_icon(text, is_valid),
            show_button=self.show_button.value,
        )

    def __enter__(self) -> CompositePipeline:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ----- Sub-pipelines -----

    def _start_timer(self) -> None:
        ticks = interval(self._config.tick_interval, self._scheduler)
        self._subscriptions.add(
            ticks.subscribe(lambda _: self._publish(self.count, "count", self.count.value + 1))
        )

    def _add_text_subscriber(self) -> None:
        min_length = self._config.min_text_length
        validity = self.text.debounce(self._config.debounce_delay, self._scheduler).map(
            lambda text: len(text) > min_length
        )
        self._subscriptions.add(
            validity.subscribe(lambda ok: self._publish(self.text_is_valid, "text_is_valid", ok))
        )

    def _add_button_subscriber(self) -> None:
        threshold = self._config.gate_threshold
        self._subscriptions.add(
            combine_latest(self.text_is_valid, self.count).subscribe(
                lambda pair: self._publish(
                    self.show_button, "show_button", pair[0] and pair[1] >= threshold,
                )
            )
        )

    def _publish[T](self, subject: ValueSubject[T], field: str, value: T) -> None:
        subject.send(value)
        if self._collector is not None:
            self._collector.record_publish(self.PIPELINE, field, value)
