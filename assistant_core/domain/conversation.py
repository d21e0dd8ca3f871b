from typing import List, Optional, Protocol

from .models import ChatMessage


class ConversationHistory:
    """按对话顺序保存的消息列表，由 ChatClient 独占。

    不变量：最多一条 system 消息，且必须位于索引 0。
    """

    def __init__(self, system_prompt: Optional[str] = None):
        self._messages: List[ChatMessage] = []
        if system_prompt:
            self.set_system_prompt(system_prompt)

    def set_system_prompt(self, prompt: str) -> None:
        """替换或插入位于开头的 system 消息。"""

        message = ChatMessage(role="system", content=prompt)
        if self._messages and self._messages[0].role == "system":
            self._messages[0] = message
        else:
            self._messages.insert(0, message)

    def append_user(self, content: str) -> None:
        self._messages.append(ChatMessage(role="user", content=content))

    def append_assistant(self, content: str) -> None:
        self._messages.append(ChatMessage(role="assistant", content=content))

    def clear(self) -> None:
        self._messages.clear()

    def snapshot(self) -> List[ChatMessage]:
        """返回当前消息序列的副本，用于构造下一次请求。"""

        return list(self._messages)

    @property
    def system_prompt(self) -> Optional[str]:
        if self._messages and self._messages[0].role == "system":
            return self._messages[0].content
        return None

    def last_user_message(self) -> Optional[str]:
        for message in reversed(self._messages):
            if message.role == "user":
                return message.content
        return None

    def __len__(self) -> int:
        return len(self._messages)


class ThreadStore(Protocol):
    """线程 ID 的持久化接口（外部协作者实现）。

    只保存一个字符串：最近一次确认或创建的 thread id。
    """

    def get_thread_id(self) -> Optional[str]:
        ...

    def set_thread_id(self, thread_id: str) -> None:
        ...
