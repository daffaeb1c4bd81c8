"""Core dispatcher types."""

from .errors import ConfigurationError, DispatchError
from .event_bus import Dispatcher
from .events import TraceKind, TraceRecord
from .listeners import ListenerHandle

__all__ = [
    "ConfigurationError",
    "DispatchError",
    "Dispatcher",
    "ListenerHandle",
    "TraceKind",
    "TraceRecord",
]
