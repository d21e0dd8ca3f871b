"""Provider 抽象接口。

RunPoller 不直接依赖具体的 HTTP 实现，而是依赖此协议：

- retrieve_run: 查询一次 run 状态。
- latest_message_text: run 完成后取线程最新一条助手消息的文本。

测试中可以用简单的假对象替换，生产环境由 ThreadsApi 实现。
"""

from typing import Any, Dict, Optional, Protocol

from assistant_core.domain.models import RunStatus


class RunApi(Protocol):
    """Run 轮询所需的最小接口。"""

    async def retrieve_run(
        self, thread_id: str, run_id: str, log_ctx: Optional[Dict[str, Any]] = None
    ) -> RunStatus:
        ...

    async def latest_message_text(
        self, thread_id: str, log_ctx: Optional[Dict[str, Any]] = None
    ) -> str:
        ...
