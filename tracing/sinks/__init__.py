"""Trace sink interfaces."""

from .base import SinkTestResult, TraceSink

__all__ = ["SinkTestResult", "TraceSink"]
