"""Trace routing: fan records out to the enabled sinks."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from core.events import TraceRecord
from settings.config_loader import TraceConfig
from tracing.log_sink import LoggingTraceSink
from tracing.memory_sink import RecordingTraceSink
from tracing.sinks.base import SinkTestResult, TraceSink

LOGGER = logging.getLogger(__name__)


class TraceRouter:
    """Forward trace records to every enabled sink, isolating sink failures."""

    name = "router"

    def __init__(self, sinks: Iterable[TraceSink] = ()) -> None:
        self._sinks: Dict[str, TraceSink] = {}
        for sink in sinks:
            self.add(sink)

    @classmethod
    def from_config(cls, config: TraceConfig) -> "TraceRouter":
        router = cls(cls._build_sinks(config))
        LOGGER.info("TraceRouter initialized with sinks: %s", list(router._sinks))
        return router

    @staticmethod
    def _build_sinks(config: TraceConfig) -> List[TraceSink]:
        sinks: List[TraceSink] = []
        logging_cfg = config.sinks.logging
        if logging_cfg.enabled:
            sinks.append(LoggingTraceSink(logger_name=logging_cfg.logger, level=logging_cfg.level_no))
        memory_cfg = config.sinks.memory
        if memory_cfg.enabled:
            sinks.append(RecordingTraceSink(capacity=memory_cfg.capacity))
        return sinks

    def add(self, sink: TraceSink) -> None:
        if sink.name in self._sinks:
            LOGGER.warning("Replacing trace sink %s", sink.name)
        self._sinks[sink.name] = sink

    def remove(self, name: str) -> Optional[TraceSink]:
        return self._sinks.pop(name, None)

    def sink(self, name: str) -> Optional[TraceSink]:
        return self._sinks.get(name)

    @property
    def sinks(self) -> List[TraceSink]:
        return list(self._sinks.values())

    def enabled(self) -> bool:
        return any(sink.enabled() for sink in self._sinks.values())

    def handle(self, record: TraceRecord) -> None:
        for name, sink in list(self._sinks.items()):
            if not sink.enabled():
                continue
            try:
                sink.handle(record)
            except Exception:
                LOGGER.exception("Trace sink %s failed on %s record", name, record.kind.value)

    def self_test(self) -> SinkTestResult:
        failures = []
        for name, sink in self._sinks.items():
            result = sink.self_test()
            if not result.ok:
                failures.append(f"{name}: {result.detail}")
        if failures:
            return SinkTestResult(ok=False, detail="; ".join(failures))
        return SinkTestResult(ok=True, detail=f"{len(self._sinks)} sinks ready")

    def close(self) -> None:
        for name, sink in self._sinks.items():
            close = getattr(sink, "close", None)
            if not callable(close):
                continue
            try:
                close()
            except Exception:
                LOGGER.exception("Failed to close trace sink %s", name)


__all__ = ["TraceRouter"]
