"""Assistants API 客户端（有状态线程）。

一次 send_message 的流程：

1. 确定线程：已有 ID 则校验（失败则丢弃并新建），否则直接新建；结果写回 ThreadStore。
2. 向线程追加用户消息。
3. 以固定 assistant_id 启动 run（创建时 stream=False）。
4. 交给 RunPoller 轮询到终态，取回助手回复。

前置条件（线程）先单独解析，再执行依赖它的操作，不会递归重入公开入口。
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from assistant_core.agents.run_poller import RunPoller
from assistant_core.config.settings import ClientConfig
from assistant_core.domain.conversation import ThreadStore
from assistant_core.domain.exceptions import ClientClosedError, ProviderError, ValidationError
from assistant_core.domain.models import ThreadHandle
from assistant_core.infrastructure.logging.logger import log_event
from assistant_core.infrastructure.storage.json_store import MemoryThreadStore
from assistant_core.providers.threads_api import ThreadsApi


class AssistantClient:
    """基于 threads / runs 的有状态助手客户端。"""

    name = "openai-assistant"

    def __init__(
        self,
        config: ClientConfig,
        store: Optional[ThreadStore] = None,
        thread_id: Optional[str] = None,
        api: Optional[ThreadsApi] = None,
        poller: Optional[RunPoller] = None,
        max_wait: Optional[float] = None,
    ):
        if not config.api_key:
            raise ValidationError(code="MISSING_API_KEY", message="OPENAI_API_KEY not set")
        if not config.assistant_id:
            raise ValidationError(code="MISSING_ASSISTANT_ID", message="ASSISTANT_ID not set")
        self._config = config
        self._store = store if store is not None else MemoryThreadStore()
        # 显式传入的 ID 优先，否则读取上次持久化的 ID
        self._thread_id = thread_id or self._store.get_thread_id()
        self._confirmed = False
        self._api = api or ThreadsApi(config)
        self._poller = poller or RunPoller(self._api, interval=config.poll_interval, max_wait=max_wait)
        self._lock = asyncio.Lock()
        self._closed = False
        log_event(
            logging.INFO,
            "Initialized assistant client",
            {"client": self.name},
            has_thread=bool(self._thread_id),
        )

    @property
    def thread(self) -> Optional[ThreadHandle]:
        return ThreadHandle(self._thread_id) if self._thread_id else None

    @property
    def closed(self) -> bool:
        return self._closed

    async def ensure_thread(self) -> str:
        """校验或创建线程，返回可用的线程 ID。"""

        self._ensure_open()
        async with self._lock:
            return await self._resolve_thread(self._log_ctx())

    async def send_message(self, text: str, on_final: Optional[Callable[[str], None]] = None) -> str:
        """发送消息并等待 run 完成，返回助手回复。

        on_final 在成功时恰好调用一次；客户端关闭后不再调用。
        """

        self._ensure_open()
        async with self._lock:
            log_ctx = self._log_ctx()
            if self._confirmed and self._thread_id:
                thread_id = self._thread_id
            else:
                thread_id = await self._resolve_thread(log_ctx)
            log_ctx["thread_id"] = thread_id

            await self._api.add_message(thread_id, text, log_ctx=log_ctx)
            run_id = await self._api.create_run(
                thread_id, self._config.assistant_id, stream=False, log_ctx=log_ctx
            )
            log_event(logging.INFO, "Run started", log_ctx, run_id=run_id)

            reply = await self._poller.poll_until_terminal(thread_id, run_id, log_ctx=log_ctx)
            if self._closed:
                raise ClientClosedError()
            log_event(logging.INFO, "Run completed", log_ctx, run_id=run_id, chars=len(reply))
            if on_final is not None:
                on_final(reply)
            return reply

    async def aclose(self) -> None:
        """关闭客户端：取消进行中的轮询，之后不再触发回调。"""

        self._closed = True
        await self._poller.aclose()

    async def __aenter__(self) -> "AssistantClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    # ---- 辅助方法 ----

    async def _resolve_thread(self, log_ctx: Dict[str, Any]) -> str:
        if self._thread_id:
            candidate = self._thread_id
            try:
                await self._api.retrieve_thread(candidate, log_ctx=log_ctx)
            except ProviderError as e:
                log_event(
                    logging.WARNING,
                    "Discarding unusable thread",
                    log_ctx,
                    thread_id=candidate,
                    error=e.code,
                )
                self._thread_id = None
                self._confirmed = False
            else:
                self._remember(candidate)
                log_event(logging.INFO, "Reusing thread", log_ctx, thread_id=candidate)
                return candidate

        thread_id = await self._api.create_thread(log_ctx=log_ctx)
        self._remember(thread_id)
        log_event(logging.INFO, "Created thread", log_ctx, thread_id=thread_id)
        return thread_id

    def _remember(self, thread_id: str) -> None:
        self._thread_id = thread_id
        self._confirmed = True
        self._store.set_thread_id(thread_id)

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClientClosedError()

    def _log_ctx(self) -> Dict[str, Any]:
        return {"trace_id": f"tr-{uuid4().hex}", "client": self.name}
