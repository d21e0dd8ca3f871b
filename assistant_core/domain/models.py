"""统一的对话数据模型。

本模块定义了两个客户端共享的标准数据结构：

- ChatMessage: 一条对话消息（system/user/assistant）。
- StreamFragment: 流式响应中的一次增量（含累积文本）。
- ThreadHandle: Assistant 线程标识。
- RunState: Assistant run 的生命周期状态。

HTTP 层只负责在 Provider JSON 与这些模型之间做转换，上层不直接接触原始 JSON。
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Literal, Optional


# LLM 消息角色类型（与 OpenAI 的 role 字段对应）
Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ChatMessage:
    """一条对话消息，既用于构造请求，也用于记录回复。"""

    role: Role
    content: str

    def to_payload(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class StreamFragment:
    """流式输出的一次增量。

    - delta: 本次新增的文本。
    - accumulated: 截至本次的完整累积文本（调用方通常只用这个字段刷新界面）。

    流结束标记记录在 DecodeResult.finished 上。
    """

    delta: str
    accumulated: str


@dataclass(frozen=True)
class ThreadHandle:
    """Provider 侧持久对话线程的标识。"""

    thread_id: str


class RunState(Enum):
    """Assistant run 的状态。

    CREATED 仅在本地使用：run 已创建但尚未查询到状态。
    OTHER 表示 Provider 返回了未知的中间状态，继续轮询。
    """

    CREATED = "created"
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    OTHER = "other"

    @classmethod
    def parse(cls, status: str) -> "RunState":
        for state in cls:
            if state is not cls.OTHER and state.value == status:
                return state
        return cls.OTHER

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.COMPLETED, RunState.FAILED, RunState.CANCELLED)


@dataclass(frozen=True)
class RunStatus:
    """一次状态查询的结果，保留 Provider 原始状态字符串。"""

    state: RunState
    raw: str
    run_id: Optional[str] = None
