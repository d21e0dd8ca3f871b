"""对外 API 服务模块。

提供简化的函数接口供上层应用调用：按 Settings 构造客户端，
以及一次性问答的便捷协程。不保存任何进程级的客户端单例。
"""

from pathlib import Path
from typing import Callable, Optional

from assistant_core.agents.assistant_client import AssistantClient
from assistant_core.agents.chat_client import ChatClient
from assistant_core.config.settings import ClientConfig, Settings, settings as default_settings
from assistant_core.infrastructure.storage.json_store import JsonThreadStore
from assistant_core.prompts import load_system_prompt


def create_chat_client(
    cfg: Optional[Settings] = None,
    system_prompt: Optional[str] = None,
    agent_type: str = "weather-assistant",
) -> ChatClient:
    """按配置创建 ChatClient，并写入系统提示词。

    提示词优先级：参数 > 配置中的 system_prompt > prompts 目录下的内置文件。
    """

    cfg = cfg or default_settings
    prompt = system_prompt or cfg.system_prompt or load_system_prompt(agent_type)
    return ChatClient(ClientConfig.from_settings(cfg), system_prompt=prompt)


def create_assistant_client(cfg: Optional[Settings] = None, thread_id: Optional[str] = None) -> AssistantClient:
    """按配置创建 AssistantClient，线程 ID 持久化在 storage_root 下。"""

    cfg = cfg or default_settings
    store = JsonThreadStore(Path(cfg.storage_root), key=cfg.thread_store_key)
    return AssistantClient(ClientConfig.from_settings(cfg), store=store, thread_id=thread_id)


async def ask(
    question: str,
    client: Optional[ChatClient] = None,
    stream: bool = False,
    on_fragment: Optional[Callable[[str], None]] = None,
    reset_history: bool = False,
) -> str:
    """向 ChatClient 提一个问题并返回完整回答。

    reset_history=True 时先清空历史并恢复系统提示词。
    """

    owned = client is None
    chat = client or create_chat_client()
    try:
        if reset_history:
            prompt = chat.system_prompt
            chat.clear_history()
            if prompt:
                chat.set_system_prompt(prompt)
        if stream:
            return await chat.send_message_stream(question, on_fragment=on_fragment)
        return await chat.send_message(question)
    finally:
        if owned:
            await chat.aclose()


async def ask_assistant(
    question: str,
    client: Optional[AssistantClient] = None,
    on_final: Optional[Callable[[str], None]] = None,
) -> str:
    """通过 AssistantClient 提问并返回最终回复。"""

    owned = client is None
    assistant = client or create_assistant_client()
    try:
        return await assistant.send_message(question, on_final=on_final)
    finally:
        if owned:
            await assistant.aclose()
