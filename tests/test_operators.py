"""Tests for tide.stream.operators — transforms, timing, and combination."""

from __future__ import annotations

import asyncio
import json

import pytest

from tide._errors import DecodeError
from tide.posts.models import Post
from tide.stream.core import Stream
from tide.stream.operators import combine_latest, decode_payload, from_awaitable, interval
from tide.stream.scheduler import LoopScheduler, VirtualScheduler
from tide.stream.subjects import Subject, ValueSubject

from .conftest import Recorder

# ---------------------------------------------------------------------------
# map / try_map
# ---------------------------------------------------------------------------


class TestMap:
    def test_transforms_in_order(self) -> None:
        subject: Subject[int] = Subject()
        seen: list[int] = []
        subject.map(lambda v: v * 10).subscribe(seen.append)
        for v in (1, 2, 3):
            subject.send(v)
        assert seen == [10, 20, 30]

    def test_forwards_completion(self, recorder: Recorder) -> None:
        subject: Subject[int] = Subject()
        subject.map(str).subscribe(*recorder.handlers)
        subject.send_complete()
        assert recorder.completed == 1

    def test_cancel_detaches_from_upstream(self) -> None:
        subject: Subject[int] = Subject()
        sub = subject.map(str).subscribe()
        assert subject.subscriber_count == 1
        sub.cancel()
        assert subject.subscriber_count == 0


class TestTryMap:
    def test_failure_terminates_with_error(self, recorder: Recorder) -> None:
        subject: Subject[int] = Subject()

        def checked(v: int) -> int:
            if v < 0:
                msg = "negative"
                raise ValueError(msg)
            return v

        subject.try_map(checked).subscribe(*recorder.handlers)
        subject.send(1)
        subject.send(-1)
        subject.send(2)

        assert recorder.values == [1]
        assert isinstance(recorder.errors[0], ValueError)
        assert subject.subscriber_count == 0

    def test_upstream_error_propagates(self, recorder: Recorder) -> None:
        subject: Subject[int] = Subject()
        subject.try_map(lambda v: v).subscribe(*recorder.handlers)
        subject.send_error(OSError("down"))
        assert isinstance(recorder.errors[0], OSError)


# ---------------------------------------------------------------------------
# debounce
# ---------------------------------------------------------------------------


class TestDebounce:
    def test_emits_after_quiet_period(self, scheduler: VirtualScheduler) -> None:
        subject: Subject[str] = Subject()
        seen: list[str] = []
        subject.debounce(0.5, scheduler).subscribe(seen.append)

        subject.send("a")
        scheduler.advance_by(0.4)
        assert seen == []
        scheduler.advance_by(0.2)
        assert seen == ["a"]

    def test_rapid_values_collapse_to_last(self, scheduler: VirtualScheduler) -> None:
        text = ValueSubject("")
        seen: list[bool] = []
        text.debounce(0.5, scheduler).map(lambda t: len(t) > 3).subscribe(seen.append)

        for value in ("a", "ab", "abc", "abcd"):
            scheduler.advance_by(0.1)
            text.send(value)
        scheduler.advance_by(0.5)

        assert seen == [True]

    def test_window_restarts_on_each_value(self, scheduler: VirtualScheduler) -> None:
        subject: Subject[int] = Subject()
        seen: list[int] = []
        subject.debounce(0.5, scheduler).subscribe(seen.append)

        subject.send(1)
        scheduler.advance_by(0.3)
        subject.send(2)
        scheduler.advance_by(0.3)
        assert seen == []
        scheduler.advance_by(0.25)
        assert seen == [2]

    def test_separate_bursts_each_emit(self, scheduler: VirtualScheduler) -> None:
        subject: Subject[int] = Subject()
        seen: list[int] = []
        subject.debounce(0.5, scheduler).subscribe(seen.append)

        subject.send(1)
        scheduler.advance_by(1.0)
        subject.send(2)
        scheduler.advance_by(1.0)

        assert seen == [1, 2]

    def test_pending_value_flushed_on_completion(self, scheduler: VirtualScheduler, recorder: Recorder) -> None:
        subject: Subject[int] = Subject()
        subject.debounce(0.5, scheduler).subscribe(*recorder.handlers)
        subject.send(9)
        subject.send_complete()
        assert recorder.values == [9]
        assert recorder.completed == 1

    def test_cancel_drops_pending_value(self, scheduler: VirtualScheduler) -> None:
        subject: Subject[int] = Subject()
        seen: list[int] = []
        sub = subject.debounce(0.5, scheduler).subscribe(seen.append)
        subject.send(1)
        sub.cancel()
        scheduler.advance_by(1.0)
        assert seen == []
        assert scheduler.pending == 0

    def test_negative_delay_rejected(self, scheduler: VirtualScheduler) -> None:
        with pytest.raises(ValueError, match="negative"):
            Subject().debounce(-1, scheduler)


# ---------------------------------------------------------------------------
# combine_latest
# ---------------------------------------------------------------------------


class TestCombineLatest:
    def test_silent_until_both_sides_emit(self) -> None:
        a: Subject[str] = Subject()
        b: Subject[int] = Subject()
        seen: list[tuple[str, int]] = []
        combine_latest(a, b).subscribe(seen.append)

        a.send("x")
        assert seen == []
        b.send(1)
        assert seen == [("x", 1)]

    def test_uses_latest_value_of_other_side(self) -> None:
        a: Subject[str] = Subject()
        b: Subject[int] = Subject()
        seen: list[tuple[str, int]] = []
        a.combine_latest(b).subscribe(seen.append)

        a.send("x")
        a.send("y")
        b.send(1)
        b.send(2)
        a.send("z")

        assert seen == [("y", 1), ("y", 2), ("z", 2)]

    def test_value_subjects_emit_immediately(self) -> None:
        seen: list[tuple[bool, int]] = []
        combine_latest(ValueSubject(False), ValueSubject(0)).subscribe(seen.append)
        assert seen == [(False, 0)]

    def test_completes_when_both_complete(self, recorder: Recorder) -> None:
        a: Subject[int] = Subject()
        b: Subject[int] = Subject()
        combine_latest(a, b).subscribe(*recorder.handlers)
        a.send(1)
        b.send(2)
        a.send_complete()
        assert recorder.completed == 0
        b.send(3)
        assert recorder.values == [(1, 2), (1, 3)]
        b.send_complete()
        assert recorder.completed == 1

    def test_completes_when_side_ends_empty(self, recorder: Recorder) -> None:
        a: Subject[int] = Subject()
        b: Subject[int] = Subject()
        combine_latest(a, b).subscribe(*recorder.handlers)
        a.send_complete()
        assert recorder.completed == 1
        assert b.subscriber_count == 0

    def test_error_from_either_side(self, recorder: Recorder) -> None:
        a: Subject[int] = Subject()
        b: Subject[int] = Subject()
        combine_latest(a, b).subscribe(*recorder.handlers)
        b.send_error(RuntimeError("b failed"))
        assert isinstance(recorder.errors[0], RuntimeError)
        assert a.subscriber_count == 0

    def test_cancel_detaches_both_sides(self) -> None:
        a: Subject[int] = Subject()
        b: Subject[int] = Subject()
        sub = combine_latest(a, b).subscribe()
        sub.cancel()
        assert a.subscriber_count == 0
        assert b.subscriber_count == 0


# ---------------------------------------------------------------------------
# decode
# ---------------------------------------------------------------------------


class TestDecode:
    def test_decodes_list_in_order(self, posts_payload: list[dict]) -> None:
        posts = decode_payload(json.dumps(posts_payload).encode(), Post, many=True)
        assert [p.id for p in posts] == [1, 2, 7]
        assert isinstance(posts, tuple)

    def test_decodes_single_object(self) -> None:
        post = decode_payload(b'{"userId": 3, "id": 4, "title": "t", "body": "b"}', Post)
        assert post == Post(user_id=3, id=4, title="t", body="b")

    def test_invalid_json(self) -> None:
        with pytest.raises(DecodeError, match="not valid JSON"):
            decode_payload(b"<html>", Post, many=True)

    def test_object_when_array_expected(self) -> None:
        with pytest.raises(DecodeError, match="JSON array"):
            decode_payload(b'{"id": 1}', Post, many=True)

    def test_bad_element_reports_index(self, posts_payload: list[dict]) -> None:
        posts_payload[1]["title"] = 42
        with pytest.raises(DecodeError, match="index 1"):
            decode_payload(json.dumps(posts_payload), Post, many=True)

    def test_non_object_element(self) -> None:
        with pytest.raises(DecodeError, match="JSON object"):
            decode_payload(b"[1, 2]", Post, many=True)

    def test_operator_routes_failure_to_error(self, recorder: Recorder) -> None:
        subject: Subject[bytes] = Subject()
        subject.decode(Post, many=True).subscribe(*recorder.handlers)
        subject.send(b"[]")
        subject.send(b"nope")
        assert recorder.values == [()]
        assert isinstance(recorder.errors[0], DecodeError)


# ---------------------------------------------------------------------------
# interval
# ---------------------------------------------------------------------------


class TestInterval:
    def test_ticks_once_per_period(self, scheduler: VirtualScheduler) -> None:
        ticks: list[float] = []
        interval(1.0, scheduler).subscribe(ticks.append)

        scheduler.advance_by(0.5)
        assert ticks == []
        scheduler.advance_to(3.0)
        assert ticks == [1.0, 2.0, 3.0]

    def test_cancel_stops_ticking(self, scheduler: VirtualScheduler) -> None:
        ticks: list[float] = []
        sub = interval(1.0, scheduler).subscribe(ticks.append)
        scheduler.advance_to(2.0)
        sub.cancel()
        scheduler.advance_to(10.0)
        assert len(ticks) == 2
        assert scheduler.pending == 0

    def test_keeps_ticking_after_subscriber_raises(self, scheduler: VirtualScheduler) -> None:
        ticks: list[float] = []

        def on_tick(t: float) -> None:
            ticks.append(t)
            if len(ticks) == 1:
                msg = "first tick rejected"
                raise RuntimeError(msg)

        interval(1.0, scheduler).subscribe(on_tick)
        with pytest.raises(RuntimeError, match="first tick"):
            scheduler.advance_to(1.0)
        scheduler.advance_to(3.0)
        assert ticks == [1.0, 2.0, 3.0]

    def test_cancel_from_handler_stops_next_tick(self, scheduler: VirtualScheduler) -> None:
        ticks: list[float] = []
        sub = None

        def on_tick(t: float) -> None:
            ticks.append(t)
            sub.cancel()

        sub = interval(1.0, scheduler).subscribe(on_tick)
        scheduler.advance_to(5.0)
        assert ticks == [1.0]

    def test_period_must_be_positive(self, scheduler: VirtualScheduler) -> None:
        with pytest.raises(ValueError, match="positive"):
            interval(0, scheduler)


# ---------------------------------------------------------------------------
# Async sources and context hops
# ---------------------------------------------------------------------------


class TestFromAwaitable:
    @pytest.mark.asyncio
    async def test_emits_result_then_completes(self, recorder: Recorder) -> None:
        async def work() -> int:
            await asyncio.sleep(0)
            return 42

        from_awaitable(work).subscribe(*recorder.handlers)
        await asyncio.sleep(0.01)

        assert recorder.values == [42]
        assert recorder.completed == 1

    @pytest.mark.asyncio
    async def test_exception_becomes_error(self, recorder: Recorder) -> None:
        async def work() -> int:
            msg = "nope"
            raise LookupError(msg)

        from_awaitable(work).subscribe(*recorder.handlers)
        await asyncio.sleep(0.01)

        assert isinstance(recorder.errors[0], LookupError)

    @pytest.mark.asyncio
    async def test_cancel_cancels_task(self, recorder: Recorder) -> None:
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def work() -> int:
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return 1

        sub = from_awaitable(work).subscribe(*recorder.handlers)
        await started.wait()
        sub.cancel()
        await asyncio.wait_for(cancelled.wait(), timeout=1.0)

        assert recorder.events == 0


class TestReceiveOn:
    @pytest.mark.asyncio
    async def test_delivers_on_loop_in_order(self) -> None:
        subject: Subject[int] = Subject()
        seen: list[int] = []
        subject.receive_on(LoopScheduler()).subscribe(seen.append)

        subject.send(1)
        subject.send(2)
        assert seen == []
        await asyncio.sleep(0)
        assert seen == [1, 2]

    @pytest.mark.asyncio
    async def test_delivers_values_sent_from_worker_thread(self) -> None:
        subject: Subject[int] = Subject()
        seen: list[int] = []
        subject.receive_on(LoopScheduler()).subscribe(seen.append)

        await asyncio.to_thread(lambda: [subject.send(v) for v in range(5)])
        await asyncio.sleep(0.01)

        assert seen == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_nothing_after_cancel(self) -> None:
        subject: Subject[int] = Subject()
        seen: list[int] = []
        sub = subject.receive_on(LoopScheduler()).subscribe(seen.append)

        subject.send(1)
        sub.cancel()
        await asyncio.sleep(0.01)

        assert seen == []

    def test_virtual_scheduler_hop(self, scheduler: VirtualScheduler) -> None:
        seen: list[int] = []
        Stream(lambda sink: sink.send(5)).receive_on(scheduler).subscribe(seen.append)
        assert seen == []
        scheduler.advance_by(0)
        assert seen == [5]
