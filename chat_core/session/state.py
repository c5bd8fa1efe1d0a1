"""会话控制器持有的状态对象。

所有字段只由 ChatSession 的状态迁移方法修改，UI 侧只读。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from chat_core.domain.models import Attachment, Chat, Message


class SendState(str, Enum):
    """单次发送的生命周期。"""

    IDLE = "idle"
    PENDING = "pending"
    STREAMING = "streaming"
    COMMITTED = "committed"
    ABORTED = "aborted"
    ERROR = "error"


@dataclass(frozen=True)
class SendTicket:
    """一次发送的代次令牌。

    只有当 generation 仍是会话当前代次时，该发送的结果才会写入 UI 可见状态；
    追加到当前视图还要求用户仍停留在 chat_id 对应的会话。
    """

    generation: int
    chat_id: str


@dataclass
class SessionState:
    chats: List[Chat] = field(default_factory=list)
    current_chat_id: Optional[str] = None
    # 当前视图中的消息
    messages: List[Message] = field(default_factory=list)
    input: str = ""
    attachments: List[Attachment] = field(default_factory=list)
    sending: bool = False
    is_streaming: bool = False
    send_state: SendState = SendState.IDLE
    # 累积器：chat_id -> 已收到的增量拼接
    streaming_by_chat: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)
    generation: int = 0

    def find_chat(self, chat_id: Optional[str]) -> Optional[Chat]:
        if chat_id is None:
            return None
        for chat in self.chats:
            if chat.id == chat_id:
                return chat
        return None

    @property
    def current_chat(self) -> Optional[Chat]:
        return self.find_chat(self.current_chat_id)

    def partial_text(self, chat_id: Optional[str] = None) -> str:
        return self.streaming_by_chat.get(chat_id or self.current_chat_id or "", "")
