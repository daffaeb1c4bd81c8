"""追踪记录定义：调度器对外输出的统一结构体。

追踪层与渲染方式无关，日志、内存记录器等 sink 通过共享的类型而非零散的字符串通信。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Hashable, Mapping, Tuple


class TraceKind(str, Enum):
    """追踪记录的类别。"""

    SUB = "sub"
    SUB_ONCE = "sub_once"
    OFF = "off"
    EMIT = "emit"
    FAIL = "fail"


@dataclass(slots=True, frozen=True)
class TraceRecord:
    """一次注册、注销或分发的快照，附带时间戳。"""

    kind: TraceKind
    event: Hashable
    ts: float
    listeners: Tuple[str, ...] = ()
    args: Tuple[Any, ...] = ()
    count: int = 0
    detail: Mapping[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        """事件键的可读名称，Enum 取其值。"""

        if isinstance(self.event, Enum):
            return str(self.event.value)
        return str(self.event)


__all__ = ["TraceKind", "TraceRecord"]
