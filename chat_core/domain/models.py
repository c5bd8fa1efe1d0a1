"""统一的消息与会话数据模型。

本模块定义了各个 backend 适配器与会话控制器共享的标准数据结构：

- Message: 一条对话消息（user/assistant），构造后不可变。
- Chat: 一个会话，messages 只追加、不修改。
- Attachment: 附件选择器提供的文件描述（仅名称/大小/类型）。

所有适配器只负责把各自厂商的响应 JSON 转换为 Message。
"""

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal

# 消息角色
Role = Literal["user", "assistant"]

DEFAULT_TITLE = "New Chat"
ELLIPSIS = "…"

_id_lock = threading.Lock()
_last_id = 0


def new_id() -> str:
    """生成基于时间的 id。

    取纳秒时间戳，若与上一次相同或更小则顺延，保证进程内严格递增、不会重复。
    """

    global _last_id
    with _id_lock:
        candidate = time.time_ns()
        if candidate <= _last_id:
            candidate = _last_id + 1
        _last_id = candidate
    return str(candidate)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Message:
    """一条对话消息。

    - id: 基于时间生成的唯一 id。
    - role: user / assistant。
    - content: 支持 markdown 的文本，可能内嵌图片引用 `![image](url)`。
    - created_at: ISO-8601 时间戳（UTC）。
    """

    id: str
    role: Role
    content: str
    created_at: str

    @classmethod
    def create(cls, role: Role, content: str) -> "Message":
        return cls(id=new_id(), role=role, content=content, created_at=utc_now_iso())

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls.create("user", content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls.create("assistant", content)

    @property
    def timestamp(self) -> datetime:
        return datetime.fromisoformat(self.created_at.replace("Z", "+00:00"))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "role": self.role, "content": self.content, "createdAt": self.created_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            id=str(data["id"]),
            role=data.get("role") or "assistant",
            content=data.get("content") or "",
            created_at=data.get("createdAt") or data.get("created_at") or utc_now_iso(),
        )


@dataclass
class Chat:
    """一个会话。

    title 初始为启发式标题（以省略号结尾）或默认标题，标题补全后可被改写一次。
    messages 按发送顺序排列，只能通过 append() 追加。
    """

    id: str
    title: str = DEFAULT_TITLE
    messages: List[Message] = field(default_factory=list)

    def append(self, message: Message) -> None:
        self.messages.append(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Chat":
        return cls(
            id=str(data["id"]),
            title=data.get("title") or DEFAULT_TITLE,
            messages=[Message.from_dict(m) for m in data.get("messages") or []],
        )


@dataclass(frozen=True)
class Attachment:
    """附件描述，由外部附件选择器提供；本层只使用文件名。"""

    name: str
    size: int = 0
    type: str = ""
