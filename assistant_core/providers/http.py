"""OpenAI HTTP 调用的公共部分。

两个客户端共用这里的逻辑：

1. 拼接 URL，附带 Bearer 认证头。
2. 每次请求独立的 httpx 超时，外加整体调用截止时间（resource_timeout）。
3. 把传输错误、非 2xx 响应和非法 JSON 映射为统一的 ProviderError。
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from assistant_core.config.settings import ClientConfig
from assistant_core.domain.exceptions import (
    ApiError,
    DecodingError,
    InvalidResponseError,
    NetworkError,
    NoDataError,
)
from assistant_core.infrastructure.logging.logger import log_event


def extract_error_message(body: str) -> Optional[str]:
    """尝试从响应体中取出 error.message，失败返回 None。"""

    try:
        data = json.loads(body)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return None


def raise_for_provider_status(resp: httpx.Response, log_ctx: Dict[str, Any]) -> None:
    """非 2xx 响应转换为 ApiError / InvalidResponseError。"""

    if 200 <= resp.status_code < 300:
        return
    body = resp.text
    message = extract_error_message(body)
    if message is not None:
        log_event(logging.WARNING, "Provider returned error", log_ctx, status=resp.status_code, error=message)
        raise ApiError(message, http_status=resp.status_code)
    # 原始响应体只写日志，不放进异常
    log_event(logging.WARNING, "Unexpected error response", log_ctx, status=resp.status_code, body=body)
    raise InvalidResponseError(http_status=resp.status_code)


def decode_json(resp: httpx.Response, log_ctx: Dict[str, Any]) -> Any:
    """解析 2xx 响应体；空响应为 NoDataError，非法 JSON 为 DecodingError。"""

    if not resp.content:
        raise NoDataError()
    try:
        return json.loads(resp.text)
    except ValueError as e:
        log_event(logging.WARNING, "Failed to decode response", log_ctx, body=resp.text)
        raise DecodingError(cause=e)


class OpenAIHttp:
    """面向 OpenAI REST API 的最小异步 HTTP 封装。"""

    def __init__(self, config: ClientConfig):
        self._config = config

    @property
    def base_url(self) -> str:
        return self._config.base_url.rstrip("/")

    def headers(self, with_body: bool = True) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self._config.api_key}"}
        if with_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._config.request_timeout, trust_env=False)

    async def request(
        self,
        method: str,
        path: str,
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        log_ctx: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """发送一次请求并返回完整响应；不检查状态码。"""

        ctx = dict(log_ctx or {})
        ctx.setdefault("endpoint", path)
        try:
            resp = await asyncio.wait_for(
                self._send(method, path, json_body, params),
                timeout=self._config.resource_timeout,
            )
        except asyncio.TimeoutError as e:
            log_event(logging.WARNING, "Request deadline exceeded", ctx, method=method)
            raise NetworkError("request timed out", cause=e)
        log_event(logging.INFO, "Received HTTP response", ctx, method=method, status=resp.status_code)
        return resp

    async def _send(
        self,
        method: str,
        path: str,
        json_body: Optional[Dict[str, Any]],
        params: Optional[Dict[str, Any]],
    ) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.request(
                    method,
                    f"{self.base_url}{path}",
                    json=json_body,
                    params=params,
                    headers=self.headers(with_body=json_body is not None or method == "POST"),
                )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise NetworkError(cause=e)

    async def request_json(
        self,
        method: str,
        path: str,
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        log_ctx: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """发送请求，检查状态码并返回解析后的 JSON。"""

        ctx = dict(log_ctx or {})
        ctx.setdefault("endpoint", path)
        resp = await self.request(method, path, json_body=json_body, params=params, log_ctx=ctx)
        raise_for_provider_status(resp, ctx)
        return decode_json(resp, ctx)

    async def stream_lines(
        self,
        path: str,
        json_body: Dict[str, Any],
        log_ctx: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[str]:
        """以流式 POST 请求逐行产出响应体。

        非 2xx 响应会先读完响应体再按错误规则抛出。整体截止时间由调用方负责。
        """

        ctx = dict(log_ctx or {})
        ctx.setdefault("endpoint", path)
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST",
                    f"{self.base_url}{path}",
                    json=json_body,
                    headers=self.headers(),
                ) as resp:
                    log_event(logging.INFO, "Received HTTP response", ctx, method="POST", status=resp.status_code)
                    if not 200 <= resp.status_code < 300:
                        await resp.aread()
                        raise_for_provider_status(resp, ctx)
                    async for line in resp.aiter_lines():
                        yield line
        except httpx.RequestError as e:
            raise NetworkError(cause=e)
