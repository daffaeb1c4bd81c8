"""Render trace records as log lines."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from core.events import TraceKind, TraceRecord
from tracing.sinks.base import SinkTestResult, TraceSink

LOGGER = logging.getLogger(__name__)


def _format_detail(detail: Mapping[str, Any] | None) -> str:
    if not detail:
        return ""
    try:
        return ", ".join(f"{k}: {v}" for k, v in detail.items())
    except Exception:
        return json.dumps(dict(detail), ensure_ascii=False, default=repr)


def _timestamp(ts: float) -> str:
    dt = datetime.fromtimestamp(ts, tz=timezone.utc)
    return dt.strftime("%H:%M:%S.%f")[:-3]


def format_record(record: TraceRecord) -> str:
    """One-line rendering, e.g. ``[EMIT] score_changed 12:00:01.000 listeners=2 args=(10,) -> A.f, B.f``."""

    head = f"[{record.kind.name}] {record.label} {_timestamp(record.ts)}"
    if record.kind is TraceKind.EMIT:
        line = f"{head} listeners={record.count} args={record.args!r}"
    elif record.kind is TraceKind.OFF:
        line = f"{head} removed={record.count}"
    elif record.kind is TraceKind.FAIL:
        line = f"{head} args={record.args!r}"
    else:
        line = f"{head} total={record.count}"
    if record.listeners:
        line = f"{line} -> {', '.join(record.listeners)}"
    detail = _format_detail(record.detail)
    if detail:
        line = f"{line} ({detail})"
    return line


@dataclass(slots=True)
class LoggingTraceSink(TraceSink):
    """日志通道：把追踪记录写入指定 logger。"""

    enabled_flag: bool = True
    logger_name: str = "dispatch.trace"
    level: int = logging.DEBUG
    name: str = "logging"

    def enabled(self) -> bool:
        return self.enabled_flag

    def handle(self, record: TraceRecord) -> None:
        if not self.enabled():
            return
        logging.getLogger(self.logger_name).log(self.level, "%s", format_record(record))

    def self_test(self) -> SinkTestResult:
        target = logging.getLogger(self.logger_name)
        if not target.isEnabledFor(self.level):
            return SinkTestResult(
                ok=False,
                detail=f"logger {self.logger_name} drops {logging.getLevelName(self.level)} records",
            )
        return SinkTestResult(ok=True, detail=f"logging to {self.logger_name}")


__all__ = ["format_record", "LoggingTraceSink"]
