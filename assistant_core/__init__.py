"""Assistant Core 顶层包。

该包提供与 OpenAI 对话的客户端层：
带多轮上下文与流式输出的 ChatClient，
以及基于持久线程和 run 轮询的 AssistantClient。
"""

from assistant_core.agents.assistant_client import AssistantClient
from assistant_core.agents.chat_client import ChatClient
from assistant_core.config.settings import ClientConfig

__all__ = ["AssistantClient", "ChatClient", "ClientConfig"]
