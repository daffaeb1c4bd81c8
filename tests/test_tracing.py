import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.event_bus import Dispatcher
from core.events import TraceKind, TraceRecord
from settings.config_loader import MemorySinkConfig, TraceConfig, TraceSinksConfig
from tracing.log_sink import LoggingTraceSink, format_record
from tracing.memory_sink import RecordingTraceSink
from tracing.router import TraceRouter
from tracing.sinks.base import SinkTestResult, TraceSink


@dataclass
class _ExplodingSink(TraceSink):
    name: str = "exploding"
    attempts: List[TraceRecord] = field(default_factory=list)

    def enabled(self) -> bool:
        return True

    def handle(self, record: TraceRecord) -> None:
        self.attempts.append(record)
        raise RuntimeError("sink down")

    def self_test(self) -> SinkTestResult:
        return SinkTestResult(ok=False, detail="always fails")


class _Hud:
    def on_score(self, score: int) -> None:
        pass


def _traced(sink: TraceSink, debug: bool = True) -> Dispatcher:
    return Dispatcher(trace_sink=sink, debug=debug, clock=lambda: 0.0)


def test_each_operation_emits_its_record_kind() -> None:
    sink = RecordingTraceSink()
    dispatcher = _traced(sink)
    hud = _Hud()

    dispatcher.subscribe("score_changed", hud.on_score)
    dispatcher.subscribe_once("score_changed", hud.on_score)
    dispatcher.publish("score_changed", 10)
    dispatcher.unsubscribe("score_changed", hud.on_score)

    kinds = [record.kind for record in sink.records()]
    assert kinds == [TraceKind.SUB, TraceKind.SUB_ONCE, TraceKind.EMIT, TraceKind.OFF]

    emit = sink.records(kind=TraceKind.EMIT)[0]
    assert emit.event == "score_changed"
    assert emit.args == (10,)
    assert emit.count == 2
    assert emit.listeners == ("_Hud.on_score", "_Hud.on_score")
    assert emit.ts == 0.0


def test_off_is_traced_even_without_match() -> None:
    sink = RecordingTraceSink()
    dispatcher = _traced(sink)

    dispatcher.unsubscribe("unknown", _Hud().on_score)

    (record,) = sink.records()
    assert record.kind is TraceKind.OFF
    assert record.count == 0


def test_emit_with_no_listeners_reports_zero() -> None:
    sink = RecordingTraceSink()
    dispatcher = _traced(sink)

    dispatcher.publish("empty", "payload")

    (record,) = sink.records(kind=TraceKind.EMIT)
    assert record.count == 0
    assert record.listeners == ()
    assert record.args == ("payload",)


def test_listener_failure_is_traced() -> None:
    sink = RecordingTraceSink()
    dispatcher = _traced(sink)

    def broken() -> None:
        raise ValueError("bad state")

    dispatcher.subscribe("tick", broken)
    dispatcher.publish("tick")

    (failure,) = sink.records(kind=TraceKind.FAIL)
    assert failure.detail == {"error": "ValueError", "message": "bad state"}


def test_nothing_is_traced_while_debug_is_off() -> None:
    sink = RecordingTraceSink()
    dispatcher = _traced(sink, debug=False)

    dispatcher.subscribe("tick", _Hud().on_score)
    dispatcher.publish("tick", 1)
    assert sink.records() == []

    dispatcher.toggle_debug()
    assert dispatcher.debug is True
    dispatcher.publish("tick", 2)
    assert [record.kind for record in sink.records()] == [TraceKind.EMIT]

    dispatcher.toggle_debug()
    dispatcher.publish("tick", 3)
    assert len(sink.records()) == 1


def test_failing_sink_does_not_break_dispatch(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR)
    sink = _ExplodingSink()
    dispatcher = _traced(sink)
    calls: List[int] = []

    dispatcher.subscribe("tick", calls.append)
    dispatcher.publish("tick", 1)

    assert calls == [1]
    assert len(sink.attempts) == 2
    assert any("Trace sink" in record.message for record in caplog.records)


def test_router_fans_out_and_isolates_sinks(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR)
    memory = RecordingTraceSink()
    router = TraceRouter([_ExplodingSink(), memory])
    dispatcher = _traced(router)

    dispatcher.publish("tick", 1)

    assert [record.kind for record in memory.records()] == [TraceKind.EMIT]
    assert router.self_test().ok is False


def test_router_skips_disabled_sinks() -> None:
    enabled = RecordingTraceSink()
    disabled = RecordingTraceSink(name="muted", enabled_flag=False)
    router = TraceRouter([enabled, disabled])

    _traced(router).publish("tick")

    assert len(enabled.records()) == 1
    assert disabled.records() == []


def test_router_from_config_builds_enabled_sinks() -> None:
    config = TraceConfig(sinks=TraceSinksConfig(memory=MemorySinkConfig(enabled=True, capacity=2)))
    router = TraceRouter.from_config(config)

    assert isinstance(router.sink("logging"), LoggingTraceSink)
    memory = router.sink("memory")
    assert isinstance(memory, RecordingTraceSink)

    dispatcher = _traced(router)
    for value in range(3):
        dispatcher.publish("tick", value)
    assert [record.args for record in memory.records()] == [(1,), (2,)]


def test_logging_sink_writes_formatted_lines(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="dispatch.trace")
    dispatcher = _traced(LoggingTraceSink())

    dispatcher.publish("score_changed", 10)

    assert "[EMIT] score_changed 00:00:00.000 listeners=0 args=(10,)" in caplog.messages


def test_format_record_variants() -> None:
    emit = TraceRecord(
        kind=TraceKind.EMIT,
        event="score_changed",
        ts=0.0,
        listeners=("A.on_score", "B.on_score"),
        args=(10,),
        count=2,
    )
    off = TraceRecord(kind=TraceKind.OFF, event="score_changed", ts=0.0, listeners=("A.on_score",), count=1)
    fail = TraceRecord(
        kind=TraceKind.FAIL,
        event="score_changed",
        ts=0.0,
        listeners=("A.on_score",),
        args=(10,),
        count=1,
        detail={"error": "KeyError"},
    )

    assert format_record(emit) == "[EMIT] score_changed 00:00:00.000 listeners=2 args=(10,) -> A.on_score, B.on_score"
    assert format_record(off) == "[OFF] score_changed 00:00:00.000 removed=1 -> A.on_score"
    assert format_record(fail) == "[FAIL] score_changed 00:00:00.000 args=(10,) -> A.on_score (error: KeyError)"


def test_logging_sink_self_test_reports_dropped_level() -> None:
    logging.getLogger("dispatch.quiet").setLevel(logging.CRITICAL)
    sink = LoggingTraceSink(logger_name="dispatch.quiet", level=logging.DEBUG)

    assert sink.self_test().ok is False
