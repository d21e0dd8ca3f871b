"""OpenAI Assistants（threads / runs）REST 适配器。

本模块负责：

1. 线程的创建与校验。
2. 向线程追加用户消息、启动 run。
3. 查询 run 状态，取回最新助手消息。

所有方法只做一次 HTTP 调用，不做重试；状态机由 RunPoller / AssistantClient 驱动。
"""

import logging
from typing import Any, Dict, List, Optional

from assistant_core.config.settings import ClientConfig
from assistant_core.domain.exceptions import (
    ApiError,
    InvalidResponseError,
    RunError,
    ThreadError,
)
from assistant_core.domain.models import RunState, RunStatus
from assistant_core.infrastructure.logging.logger import log_event
from assistant_core.providers.http import OpenAIHttp, decode_json, extract_error_message
from assistant_core.providers.registry import OPENAI_CONFIG


NO_ASSISTANT_RESPONSE = "no assistant response"


class ThreadsApi:
    """Threads / Runs 端点的异步客户端。"""

    name = "openai-threads"

    def __init__(self, config: ClientConfig, http: Optional[OpenAIHttp] = None):
        self._config = config
        self._http = http or OpenAIHttp(config)
        self._root = OPENAI_CONFIG.threads_path

    async def create_thread(self, log_ctx: Optional[Dict[str, Any]] = None) -> str:
        """创建新线程并返回其 ID。"""

        ctx = dict(log_ctx or {})
        resp = await self._http.request("POST", self._root, json_body={}, log_ctx=ctx)
        if not 200 <= resp.status_code < 300:
            message = extract_error_message(resp.text) or "Thread creation failed"
            log_event(logging.WARNING, "Thread creation rejected", ctx, status=resp.status_code, body=resp.text)
            raise ThreadError(message, http_status=resp.status_code)
        data = decode_json(resp, ctx)
        thread_id = data.get("id") if isinstance(data, dict) else None
        if not isinstance(thread_id, str) or not thread_id:
            raise ThreadError("Thread creation failed")
        return thread_id

    async def retrieve_thread(self, thread_id: str, log_ctx: Optional[Dict[str, Any]] = None) -> None:
        """确认线程仍然存在；失败时抛出 ProviderError。"""

        resp = await self._http.request("GET", f"{self._root}/{thread_id}", log_ctx=log_ctx)
        if not 200 <= resp.status_code < 300:
            raise InvalidResponseError(http_status=resp.status_code)

    async def add_message(self, thread_id: str, content: str, log_ctx: Optional[Dict[str, Any]] = None) -> None:
        await self._http.request_json(
            "POST",
            f"{self._root}/{thread_id}/messages",
            json_body={"role": "user", "content": content},
            log_ctx=log_ctx,
        )

    async def create_run(
        self,
        thread_id: str,
        assistant_id: str,
        stream: bool = False,
        log_ctx: Optional[Dict[str, Any]] = None,
    ) -> str:
        """启动 run 并返回 run ID。"""

        try:
            data = await self._http.request_json(
                "POST",
                f"{self._root}/{thread_id}/runs",
                json_body={"assistant_id": assistant_id, "stream": stream},
                log_ctx=log_ctx,
            )
        except (ApiError, InvalidResponseError) as e:
            raise RunError(e.message or "Run creation failed", http_status=e.http_status)
        run_id = data.get("id") if isinstance(data, dict) else None
        if not isinstance(run_id, str) or not run_id:
            raise RunError("Run creation failed")
        return run_id

    async def retrieve_run(
        self, thread_id: str, run_id: str, log_ctx: Optional[Dict[str, Any]] = None
    ) -> RunStatus:
        data = await self._http.request_json(
            "GET", f"{self._root}/{thread_id}/runs/{run_id}", log_ctx=log_ctx
        )
        status = data.get("status") if isinstance(data, dict) else None
        if not isinstance(status, str):
            raise InvalidResponseError("run status missing")
        return RunStatus(state=RunState.parse(status), raw=status, run_id=run_id)

    async def latest_message_text(self, thread_id: str, log_ctx: Optional[Dict[str, Any]] = None) -> str:
        """取线程最新一条消息，拼接其中所有 text 内容块。"""

        data = await self._http.request_json(
            "GET",
            f"{self._root}/{thread_id}/messages",
            params={"limit": 1},
            log_ctx=log_ctx,
        )
        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list) or not items:
            raise RunError(NO_ASSISTANT_RESPONSE)
        text = collect_assistant_text(items[0])
        if not text:
            raise RunError(NO_ASSISTANT_RESPONSE)
        return text


def collect_assistant_text(message: Any) -> str:
    """拼接一条助手消息中全部 type=text 的内容块；非助手消息返回空串。"""

    if not isinstance(message, dict) or message.get("role") != "assistant":
        return ""
    blocks = message.get("content")
    if not isinstance(blocks, list):
        return ""
    parts: List[str] = []
    for block in blocks:
        if not isinstance(block, dict) or block.get("type") != "text":
            continue
        text = block.get("text") or {}
        value = text.get("value") if isinstance(text, dict) else None
        if isinstance(value, str):
            parts.append(value)
    return "".join(parts)
