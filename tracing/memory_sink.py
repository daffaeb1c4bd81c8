"""Bounded in-memory history of trace records."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Hashable, List, Optional

from core.errors import ConfigurationError
from core.events import TraceKind, TraceRecord
from tracing.sinks.base import SinkTestResult, TraceSink


@dataclass(slots=True)
class RecordingTraceSink(TraceSink):
    """Keeps the most recent ``capacity`` records, oldest first."""

    capacity: int = 256
    enabled_flag: bool = True
    name: str = "memory"
    _records: Deque[TraceRecord] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.capacity <= 0:
            raise ConfigurationError("memory sink capacity must be positive")
        self._records = deque(maxlen=self.capacity)

    def enabled(self) -> bool:
        return self.enabled_flag

    def handle(self, record: TraceRecord) -> None:
        if self.enabled():
            self._records.append(record)

    def records(self, kind: Optional[TraceKind] = None, event: Optional[Hashable] = None) -> List[TraceRecord]:
        return [
            record
            for record in self._records
            if (kind is None or record.kind is kind) and (event is None or record.event == event)
        ]

    def clear(self) -> None:
        self._records.clear()

    def self_test(self) -> SinkTestResult:
        return SinkTestResult(ok=True, detail=f"{len(self._records)}/{self.capacity} records buffered")


__all__ = ["RecordingTraceSink"]
