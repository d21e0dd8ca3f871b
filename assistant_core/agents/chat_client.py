"""Chat Completions 客户端。

ChatClient 独占一份 ConversationHistory，负责：

1. 追加用户消息，构造 {model, messages, temperature, stream} 请求体。
2. 调用 /chat/completions（普通或流式）。
3. 把响应解析为助手文本，成功后写回历史。

失败时用户消息仍保留在历史中，调用方可以据此重试；内部不做任何重试。
同一实例上的并发调用由 asyncio.Lock 串行化，不会交错修改历史。
"""

import asyncio
import logging
from contextlib import aclosing
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from assistant_core.config.settings import ClientConfig
from assistant_core.domain.conversation import ConversationHistory
from assistant_core.domain.exceptions import (
    ApiError,
    ClientClosedError,
    InvalidResponseError,
    NetworkError,
    NoDataError,
    ValidationError,
)
from assistant_core.domain.models import ChatMessage
from assistant_core.infrastructure.logging.logger import log_event
from assistant_core.providers.http import OpenAIHttp
from assistant_core.providers.registry import OPENAI_CONFIG, get_model_config
from assistant_core.providers.sse import StreamDecoder


FragmentCallback = Callable[[str], None]


class ChatClient:
    """带多轮上下文的 Chat Completions 客户端。

    - name: 客户端名称（供日志使用）。
    - send_message / send_message_stream: 对外统一调用入口。
    """

    name = "openai-chat"

    def __init__(
        self,
        config: ClientConfig,
        system_prompt: Optional[str] = None,
        history: Optional[ConversationHistory] = None,
    ):
        if not config.api_key:
            # 配置缺失走 ValidationError，方便上层统一处理
            raise ValidationError(code="MISSING_API_KEY", message="OPENAI_API_KEY not set")
        self._config = config
        self._model_cfg = get_model_config(config.model)
        self._http = OpenAIHttp(config)
        self._history = history if history is not None else ConversationHistory()
        if system_prompt:
            self._history.set_system_prompt(system_prompt)
        self._lock = asyncio.Lock()
        self._closed = False
        log_event(logging.INFO, "Initialized chat client", {"client": self.name}, model=config.model)

    # ---- 历史管理 ----

    def set_system_prompt(self, prompt: str) -> None:
        self._history.set_system_prompt(prompt)

    def clear_history(self) -> None:
        self._history.clear()
        log_event(logging.INFO, "Chat history cleared", {"client": self.name})

    @property
    def history(self) -> List[ChatMessage]:
        return self._history.snapshot()

    @property
    def system_prompt(self) -> Optional[str]:
        return self._history.system_prompt

    def last_user_message(self) -> Optional[str]:
        return self._history.last_user_message()

    @property
    def closed(self) -> bool:
        return self._closed

    # ---- 非流式 ----

    async def send_message(self, text: str) -> str:
        """发送一条消息并返回助手回复。"""

        self._ensure_open()
        async with self._lock:
            self._history.append_user(text)
            payload = self._build_payload(stream=False)
            log_ctx = self._log_ctx(payload)
            log_event(logging.INFO, "Calling provider", log_ctx, stream=False)
            data = await self._http.request_json(
                "POST", OPENAI_CONFIG.chat_path, json_body=payload, log_ctx=log_ctx
            )
            content = self._extract_reply(data)
            self._history.append_assistant(content)
            log_event(logging.INFO, "Received assistant reply", log_ctx, chars=len(content))
            return content

    # ---- 流式 ----

    async def send_message_stream(
        self,
        text: str,
        on_fragment: Optional[FragmentCallback] = None,
        on_done: Optional[FragmentCallback] = None,
    ) -> str:
        """以流式方式发送消息。

        每解析出一个片段调用一次 on_fragment(累积文本)，顺序与解析顺序一致；
        成功后在最后一个片段之后调用一次 on_done(完整文本) 并返回完整文本。
        没有任何片段时抛出 NoDataError。
        """

        self._ensure_open()
        async with self._lock:
            self._history.append_user(text)
            payload = self._build_payload(stream=True)
            log_ctx = self._log_ctx(payload)
            log_event(logging.INFO, "Calling provider", log_ctx, stream=True)
            decoder = StreamDecoder()
            try:
                await asyncio.wait_for(
                    self._consume_stream(payload, decoder, on_fragment, log_ctx),
                    timeout=self._config.resource_timeout,
                )
            except asyncio.TimeoutError as e:
                log_event(logging.WARNING, "Stream deadline exceeded", log_ctx)
                raise NetworkError("request timed out", cause=e)

            result = decoder.result()
            log_event(
                logging.INFO,
                "Stream finished",
                log_ctx,
                fragments=len(result.fragments),
                skipped_lines=result.skipped_lines,
                saw_done=result.finished,
            )
            if result.is_empty:
                raise NoDataError()
            self._history.append_assistant(result.text)
            if on_done is not None and not self._closed:
                on_done(result.text)
            return result.text

    async def _consume_stream(
        self,
        payload: Dict[str, Any],
        decoder: StreamDecoder,
        on_fragment: Optional[FragmentCallback],
        log_ctx: Dict[str, Any],
    ) -> None:
        async with aclosing(self._http.stream_lines(OPENAI_CONFIG.chat_path, payload, log_ctx)) as lines:
            async for line in lines:
                fragment = decoder.feed_line(line)
                if fragment is not None and on_fragment is not None and not self._closed:
                    on_fragment(fragment.accumulated)
                if decoder.finished:
                    break

    # ---- 生命周期 ----

    async def aclose(self) -> None:
        """关闭客户端，之后不再触发任何回调。"""

        self._closed = True

    async def __aenter__(self) -> "ChatClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    # ---- 辅助方法 ----

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClientClosedError()

    def _build_payload(self, stream: bool) -> Dict[str, Any]:
        temperature = self._config.temperature
        if temperature is None:
            temperature = self._model_cfg.default_temperature
        return {
            "model": self._model_cfg.name,
            "messages": [m.to_payload() for m in self._history.snapshot()],
            "temperature": temperature,
            "stream": stream,
        }

    def _log_ctx(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "trace_id": f"tr-{uuid4().hex}",
            "client": self.name,
            "model": payload["model"],
            "message_count": len(payload["messages"]),
        }

    @staticmethod
    def _extract_reply(data: Any) -> str:
        """取出 choices[0].message.content，结构不符时抛出 InvalidResponseError。"""

        if not isinstance(data, dict):
            raise InvalidResponseError()
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            raise ApiError(str(error["message"]), error_type=error.get("type"))
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise InvalidResponseError("response has no choices")
        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise InvalidResponseError("response has no message content")
        return content
