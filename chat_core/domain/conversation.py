from typing import Any, List, Optional, Protocol

from .models import Chat


class ChatStore(Protocol):
    """会话快照存储：启动时读取一次，每次会话列表变化后整体重写。"""

    def load(self) -> List[Chat]:
        ...

    def save(self, chats: List[Chat]) -> None:
        ...


class AuthProvider(Protocol):
    """登录协作者。会话控制器只读取 user 是否为空，不读取其内容。"""

    @property
    def user(self) -> Optional[Any]:
        ...


class SessionObserver(Protocol):
    """UI 侧回调，由会话控制器在状态变化时通知。"""

    def on_state_change(self, state: Any) -> None:
        ...

    def on_chunk(self, chat_id: str, text: str) -> None:
        ...

    def on_commit(self, chat_id: str, message: Any) -> None:
        ...

    def on_error(self, message: str) -> None:
        ...

    def on_suggestions(self, suggestions: List[str]) -> None:
        ...

    def is_at_bottom(self) -> bool:
        ...

    def scroll_to_bottom(self) -> None:
        ...


class NullObserver:
    """不做任何渲染的默认观察者。"""

    def on_state_change(self, state: Any) -> None:
        pass

    def on_chunk(self, chat_id: str, text: str) -> None:
        pass

    def on_commit(self, chat_id: str, message: Any) -> None:
        pass

    def on_error(self, message: str) -> None:
        pass

    def on_suggestions(self, suggestions: List[str]) -> None:
        pass

    def is_at_bottom(self) -> bool:
        return True

    def scroll_to_bottom(self) -> None:
        pass
