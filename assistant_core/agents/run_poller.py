"""Assistant run 轮询状态机。

状态流转：Created → Queued → InProgress → {Completed | Failed | Cancelled}

Provider 不提供推送，只能按固定间隔查询状态：

- completed：停止轮询，取线程最新一条助手消息作为结果。
- failed / cancelled：停止轮询，抛出 RunError("run failed")。
- 其他状态（含未知的中间状态）：继续轮询。
- 查询过程中的任何网络/解析错误：立即停止并向上抛出，不吞掉错误继续轮询。

每次会话在独立的 asyncio.Task 中运行，任何退出路径（成功、失败、外部取消）
都会取消该任务，保证结果交付后不会再有状态查询。
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from assistant_core.domain.exceptions import ClientClosedError, RunError
from assistant_core.domain.models import RunState
from assistant_core.infrastructure.logging.logger import log_event
from assistant_core.providers.base import RunApi


RUN_FAILED = "run failed"
RUN_TIMED_OUT = "run timed out"

SleepFn = Callable[[float], Awaitable[Any]]


class PollSession:
    """一次轮询会话：记录状态流转与查询次数，结果只交付一次。"""

    def __init__(self, thread_id: str, run_id: str):
        self.thread_id = thread_id
        self.run_id = run_id
        self.state = RunState.CREATED
        self.raw_status: Optional[str] = None
        self.status_checks = 0
        self.delivered = False

    def advance(self, state: RunState, raw: str) -> bool:
        """记录新状态，返回状态是否发生变化。"""

        changed = state is not self.state or raw != self.raw_status
        self.state = state
        self.raw_status = raw
        return changed


class RunPoller:
    """按固定间隔轮询 run 状态直到终态。

    Args:
        api: 实现 RunApi 协议的对象（生产环境为 ThreadsApi）。
        interval: 默认轮询间隔（秒）。
        max_wait: 可选的总等待上限（秒）；默认 None 表示无限轮询。
        sleep: 等待函数，测试中可替换。
    """

    def __init__(
        self,
        api: RunApi,
        interval: float = 1.0,
        max_wait: Optional[float] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self._api = api
        self._interval = interval
        self._max_wait = max_wait
        self._sleep = sleep
        self._tasks: Set["asyncio.Task[str]"] = set()
        self._closed = False
        self.last_session: Optional[PollSession] = None

    @property
    def active(self) -> bool:
        return any(not t.done() for t in self._tasks)

    async def poll_until_terminal(
        self,
        thread_id: str,
        run_id: str,
        interval: Optional[float] = None,
        on_terminal: Optional[Callable[[str], None]] = None,
        log_ctx: Optional[Dict[str, Any]] = None,
    ) -> str:
        """轮询直到 run 进入终态，返回助手回复文本。

        on_terminal 只在成功时调用一次；失败通过异常交付。
        """

        if self._closed:
            raise ClientClosedError("run poller is closed")
        session = PollSession(thread_id, run_id)
        self.last_session = session
        ctx = dict(log_ctx or {})
        ctx.update({"thread_id": thread_id, "run_id": run_id})
        delay = self._interval if interval is None else interval

        task = asyncio.create_task(self._drive(session, delay, ctx))
        self._tasks.add(task)
        try:
            text = await task
        except asyncio.CancelledError:
            if self._closed:
                raise ClientClosedError("run poller is closed")
            raise
        finally:
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
            self._tasks.discard(task)

        if session.delivered or self._closed:
            # 单次交付：关闭后或重复交付时不再回调
            return text
        session.delivered = True
        if on_terminal is not None:
            on_terminal(text)
        return text

    async def _drive(self, session: PollSession, delay: float, ctx: Dict[str, Any]) -> str:
        started = time.monotonic()
        while True:
            await self._sleep(delay)
            if self._closed:
                raise ClientClosedError("run poller is closed")
            status = await self._api.retrieve_run(session.thread_id, session.run_id, log_ctx=ctx)
            session.status_checks += 1
            if session.advance(status.state, status.raw):
                log_event(
                    logging.INFO,
                    "Run status changed",
                    ctx,
                    status=status.raw,
                    checks=session.status_checks,
                )

            if status.state.is_terminal:
                if status.state is RunState.COMPLETED:
                    return await self._api.latest_message_text(session.thread_id, log_ctx=ctx)
                raise RunError(RUN_FAILED, status=status.raw)

            if self._max_wait is not None and time.monotonic() - started >= self._max_wait:
                log_event(logging.WARNING, "Run polling timed out", ctx, checks=session.status_checks)
                raise RunError(RUN_TIMED_OUT, status=status.raw)

    async def aclose(self) -> None:
        """取消所有进行中的轮询任务。"""

        self._closed = True
        pending = [t for t in self._tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
