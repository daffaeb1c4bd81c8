"""Configuration loader for the dispatcher and its trace sinks."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import yaml
from dotenv import load_dotenv

from core.errors import ConfigurationError

LOGGER = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def _parse_flag(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ConfigurationError(f"{name}={raw!r} is not a boolean flag")


def _section(data: Optional[Dict[str, object]], name: str) -> Dict[str, object]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"'{name}' must be a mapping, got {type(data).__name__}")
    return data


def _build(cls, data: Dict[str, object], name: str):
    try:
        return cls(**data)
    except TypeError as exc:
        raise ConfigurationError(f"invalid '{name}' section: {exc}") from exc


@dataclass
class DispatcherConfig:
    """Dispatcher behaviour switches with environment indirection for ``debug``."""

    debug: bool = False
    debug_env: Optional[str] = "DISPATCH_DEBUG"
    allow_duplicates: bool = True
    thread_safe: bool = False

    @property
    def effective_debug(self) -> bool:
        if self.debug_env:
            raw = os.getenv(self.debug_env)
            if raw is not None:
                return _parse_flag(self.debug_env, raw)
        return self.debug

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "DispatcherConfig":
        return _build(cls, _section(data, "dispatcher"), "dispatcher")


@dataclass
class LoggingSinkConfig:
    """Logging trace sink configuration."""

    enabled: bool = True
    logger: str = "dispatch.trace"
    level: str = "DEBUG"

    def __post_init__(self) -> None:
        if not isinstance(logging.getLevelName(str(self.level).upper()), int):
            raise ConfigurationError(f"unknown log level {self.level!r}")

    @property
    def level_no(self) -> int:
        return logging.getLevelName(str(self.level).upper())


@dataclass
class MemorySinkConfig:
    """In-memory trace history configuration."""

    enabled: bool = False
    capacity: int = 256

    def __post_init__(self) -> None:
        if not isinstance(self.capacity, int) or self.capacity <= 0:
            raise ConfigurationError("memory sink capacity must be a positive integer")


@dataclass
class TraceSinksConfig:
    """Trace sink collection configuration."""

    logging: LoggingSinkConfig = field(default_factory=LoggingSinkConfig)
    memory: MemorySinkConfig = field(default_factory=MemorySinkConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "TraceSinksConfig":
        data = _section(data, "trace.sinks")
        return cls(
            logging=_build(LoggingSinkConfig, _section(data.get("logging"), "trace.sinks.logging"), "logging"),
            memory=_build(MemorySinkConfig, _section(data.get("memory"), "trace.sinks.memory"), "memory"),
        )


@dataclass
class TraceConfig:
    """Trace output configuration."""

    sinks: TraceSinksConfig = field(default_factory=TraceSinksConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "TraceConfig":
        return cls(sinks=TraceSinksConfig.from_dict(_section(data, "trace").get("sinks")))


@dataclass
class AppConfig:
    """Top level configuration model."""

    dispatcher: DispatcherConfig = field(default_factory=DispatcherConfig)
    trace: TraceConfig = field(default_factory=TraceConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "AppConfig":
        data = _section(data, "root")
        return cls(
            dispatcher=DispatcherConfig.from_dict(data.get("dispatcher")),
            trace=TraceConfig.from_dict(data.get("trace")),
        )


def load_config(
    config_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
) -> AppConfig:
    """Load configuration from YAML and environment variables.

    Without an explicit ``config_path`` a ``config.yaml`` next to the project
    root is used when present, otherwise defaults apply.
    """

    base_path = Path(__file__).resolve().parents[1]
    if env_path is None:
        default_env = base_path / ".env"
        if default_env.exists():
            env_path = default_env
    if env_path is not None:
        load_dotenv(dotenv_path=env_path, override=False)

    if config_path is None:
        config_path = base_path / "config.yaml"
        if not config_path.exists():
            LOGGER.debug("No config.yaml found, using defaults")
            return AppConfig()

    with open(config_path, "r", encoding="utf-8") as fp:
        raw_text = fp.read()

    try:
        data = yaml.safe_load(raw_text) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"cannot parse {config_path}: {exc}") from exc

    return AppConfig.from_dict(data)


__all__ = [
    "AppConfig",
    "DispatcherConfig",
    "LoggingSinkConfig",
    "MemorySinkConfig",
    "TraceConfig",
    "TraceSinksConfig",
    "load_config",
]
