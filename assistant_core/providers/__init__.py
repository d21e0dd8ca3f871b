"""OpenAI Provider 集成层。

该包下的模块负责：
- 定义轮询所需的抽象接口 (base)。
- 维护端点与模型配置 (registry)。
- 公共 HTTP 调用与错误映射 (http)。
- 流式响应解析 (sse) 与 threads/runs 端点 (threads_api)。
"""

from assistant_core.providers.base import RunApi
from assistant_core.providers.http import OpenAIHttp
from assistant_core.providers.sse import DecodeResult, StreamDecoder
from assistant_core.providers.threads_api import ThreadsApi

__all__ = ["RunApi", "OpenAIHttp", "DecodeResult", "StreamDecoder", "ThreadsApi"]
