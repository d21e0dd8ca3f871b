import json
import os
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

from assistant_core.domain.conversation import ThreadStore
from assistant_core.domain.exceptions import StoreError


DEFAULT_KEY = "openai_thread_id"


class MemoryThreadStore(ThreadStore):
    def __init__(self, thread_id: Optional[str] = None):
        self._thread_id = thread_id

    def get_thread_id(self) -> Optional[str]:
        return self._thread_id

    def set_thread_id(self, thread_id: str) -> None:
        self._thread_id = thread_id


class JsonThreadStore(ThreadStore):
    """把线程 ID 存在 <root>/state.json 的单个键下。"""

    def __init__(self, root: str | Path, key: str = DEFAULT_KEY):
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._path = self._root / "state.json"
        self._key = key

    @property
    def path(self) -> Path:
        return self._path

    def get_thread_id(self) -> Optional[str]:
        value = self._read().get(self._key)
        return value if isinstance(value, str) and value else None

    def set_thread_id(self, thread_id: str) -> None:
        data = self._read()
        data[self._key] = thread_id
        self._write(data)

    def _read(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StoreError(code="STORE_READ_ERROR", message=str(e))
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        tmp_path = self._root / f"state.{uuid4().hex}.json.tmp"
        try:
            tmp_path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise StoreError(code="STORE_WRITE_ERROR", message=str(e))
