import json
import os
from pathlib import Path
from typing import List
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.conversation import ChatStore
from chat_core.domain.exceptions import StoreError
from chat_core.domain.models import Chat

SNAPSHOT_NAME = "chats.json"


class JsonChatStore(ChatStore):
    """把整个会话列表保存为一个 JSON 快照文件，按列表顺序存取。"""

    def __init__(self, root: str | Path | None = None, filename: str = SNAPSHOT_NAME):
        self._root = Path(root or settings.storage_root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._path = self._root / filename

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> List[Chat]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(code="STORE_READ_ERROR", message=str(e))
        if not isinstance(data, list):
            raise StoreError(code="STORE_READ_ERROR", message=f"{self._path} does not contain a chat list")
        try:
            return [Chat.from_dict(item) for item in data]
        except (KeyError, TypeError, AttributeError) as e:
            raise StoreError(code="STORE_READ_ERROR", message=f"Malformed chat snapshot: {e!r}")

    def save(self, chats: List[Chat]) -> None:
        tmp_path = self._root / f"{self._path.stem}.{uuid4().hex}.json.tmp"
        payload = [chat.to_dict() for chat in chats]
        try:
            tmp_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StoreError(code="STORE_WRITE_ERROR", message=str(e))


class MemoryChatStore(ChatStore):
    """仅保存在内存中的快照，用于测试与一次性会话。"""

    def __init__(self, chats: List[Chat] | None = None):
        self._snapshot = json.dumps([c.to_dict() for c in chats or []])
        self.saves = 0

    def load(self) -> List[Chat]:
        return [Chat.from_dict(item) for item in json.loads(self._snapshot)]

    def save(self, chats: List[Chat]) -> None:
        self._snapshot = json.dumps([c.to_dict() for c in chats], ensure_ascii=False)
        self.saves += 1
