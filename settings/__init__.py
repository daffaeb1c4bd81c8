"""Configuration loading helpers."""

from .config_loader import AppConfig, DispatcherConfig, TraceConfig, load_config

__all__ = ["AppConfig", "DispatcherConfig", "TraceConfig", "load_config"]
