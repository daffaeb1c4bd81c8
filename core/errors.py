"""Exception types raised at the dispatcher boundary."""

from __future__ import annotations


class DispatchError(Exception):
    """Base class for dispatcher errors."""


class ConfigurationError(DispatchError, ValueError):
    """Raised for malformed event keys, listeners or configuration values."""


__all__ = ["DispatchError", "ConfigurationError"]
