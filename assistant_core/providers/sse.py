"""Chat Completions 流式响应（server-sent events）解析。

响应体由若干行组成：

    data: {"choices": [{"delta": {"content": "Hi"}}]}
    data: {"choices": [{"delta": {"content": " there"}}]}
    data: [DONE]

每遇到一个带 delta.content 的记录，就把内容追加到累积文本，
并产出一个 StreamFragment（携带累积文本而不只是增量）。
单行 JSON 解析失败只跳过该行，不中断整个解析。
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, List, Optional

from assistant_core.domain.exceptions import ApiError
from assistant_core.domain.models import StreamFragment
from assistant_core.infrastructure.logging.logger import logger


DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


@dataclass
class DecodeResult:
    """一次完整解析的结果。"""

    text: str = ""
    fragments: List[StreamFragment] = field(default_factory=list)
    finished: bool = False
    skipped_lines: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.fragments


class StreamDecoder:
    """增量解析 SSE 行，维护累积文本。

    一个实例只对应一次请求；finished 之后的行全部忽略。
    """

    def __init__(self) -> None:
        self._accumulated = ""
        self._fragments: List[StreamFragment] = []
        self._finished = False
        self._skipped = 0

    @property
    def accumulated(self) -> str:
        return self._accumulated

    @property
    def finished(self) -> bool:
        return self._finished

    def feed_line(self, line: str) -> Optional[StreamFragment]:
        """处理一行，返回新产生的片段（没有则返回 None）。"""

        if self._finished:
            return None
        data_str = line.strip()
        if not data_str:
            return None
        if data_str.startswith(DATA_PREFIX):
            data_str = data_str[len(DATA_PREFIX):].strip()
        if data_str == DONE_SENTINEL:
            self._finished = True
            return None
        try:
            payload = json.loads(data_str)
        except json.JSONDecodeError:
            self._skipped += 1
            logger.debug("Skipped malformed stream line: %s", data_str[:200])
            return None
        delta = self._extract_delta(payload)
        if delta is None:
            return None
        self._accumulated += delta
        fragment = StreamFragment(delta=delta, accumulated=self._accumulated)
        self._fragments.append(fragment)
        return fragment

    def feed(self, lines: Iterable[str]) -> Iterator[StreamFragment]:
        for line in lines:
            fragment = self.feed_line(line)
            if fragment is not None:
                yield fragment
            if self._finished:
                break

    def result(self) -> DecodeResult:
        return DecodeResult(
            text=self._accumulated,
            fragments=list(self._fragments),
            finished=self._finished,
            skipped_lines=self._skipped,
        )

    @classmethod
    def decode(cls, raw_body: str) -> DecodeResult:
        """一次性解析完整响应体。"""

        decoder = cls()
        for _ in decoder.feed(raw_body.split("\n")):
            pass
        return decoder.result()

    @staticmethod
    def _extract_delta(payload: Any) -> Optional[str]:
        if not isinstance(payload, dict):
            return None
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            raise ApiError(str(error["message"]), error_type=error.get("type"))
        choices = payload.get("choices")
        # 结构不符的记录与坏行同等对待
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return None
        delta = choices[0].get("delta") or {}
        content = delta.get("content") if isinstance(delta, dict) else None
        # 空字符串增量（常见于首个 role 记录）不产出片段
        if isinstance(content, str) and content:
            return content
        return None
