"""Trace sinks and routing for dispatcher observability."""

from .log_sink import LoggingTraceSink, format_record
from .memory_sink import RecordingTraceSink
from .router import TraceRouter
from .sinks.base import SinkTestResult, TraceSink

__all__ = [
    "LoggingTraceSink",
    "RecordingTraceSink",
    "SinkTestResult",
    "TraceRouter",
    "TraceSink",
    "format_record",
]
