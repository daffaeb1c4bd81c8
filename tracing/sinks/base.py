"""追踪 sink 抽象，确保调试输出通道可插拔。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from core.events import TraceRecord


@dataclass(slots=True)
class SinkTestResult:
    """自检结果：供命令行或调试面板展示。"""

    ok: bool
    detail: str = ""


class TraceSink(Protocol):
    """追踪 sink 统一接口，便于新增日志/内存记录等通道。"""

    name: str

    def enabled(self) -> bool:
        """返回当前通道是否开启，由配置驱动。"""

    def handle(self, record: TraceRecord) -> None:
        """接收一条追踪记录；不得阻塞调度器。"""

    def self_test(self) -> SinkTestResult:
        """触发自检，确认通道可用。"""
