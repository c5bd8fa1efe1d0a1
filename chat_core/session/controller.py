"""会话控制器。

ChatSession 持有会话列表与当前视图，负责一次发送的完整生命周期：

    idle -> pending -> (streaming -> committed) | (pending -> committed) | aborted | error

- 同一时刻最多一个发送在进行中，sending 为 True 时新的 submit 直接忽略。
- 用户消息在任何网络请求之前写入视图与会话记录，并立即持久化。
- 流式增量写入按会话划分的累积器；取消时保留已收到的部分内容。
- 提交成功后依次请求标题与后续建议（都在同一个受保护的发送范围内完成）。
- 只有本层会把错误写入 state.error 展示给用户。
"""

import logging
from typing import Any, Callable, Dict, Iterable, Optional

from chat_core.config.settings import settings
from chat_core.domain.cancellation import CancellationToken
from chat_core.domain.conversation import AuthProvider, ChatStore, NullObserver, SessionObserver
from chat_core.domain.exceptions import BusinessError, StoreError, StreamCancelled, ValidationError
from chat_core.domain.models import Attachment, Chat, Message, new_id
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.base import ChatBackend, supports_streaming
from chat_core.session.enrichment import (
    generate_title_from_message,
    is_placeholder_title,
    request_suggestions,
    request_title,
)
from chat_core.session.input_handler import annotate_prompt, handle_user_input
from chat_core.session.state import SendState, SendTicket, SessionState

DEFAULT_ERROR = "An error occurred while sending your message."
AUTH_REQUIRED = "Please sign in to send messages."


class ChatSession:
    def __init__(
        self,
        backend: ChatBackend,
        store: ChatStore,
        *,
        auth: Optional[AuthProvider] = None,
        observer: Optional[SessionObserver] = None,
        cfg=settings,
    ):
        self._backend = backend
        self._store = store
        self._auth = auth
        self._observer = observer or NullObserver()
        self._settings = cfg
        self._cancel: Optional[CancellationToken] = None
        self.state = SessionState()
        self.load()

    @property
    def backend(self) -> ChatBackend:
        return self._backend

    @property
    def cancel_token(self) -> Optional[CancellationToken]:
        return self._cancel

    # ---- 持久化 ----

    def load(self) -> None:
        """启动时读取一次会话快照。"""

        self.state.chats = list(self._store.load())
        self._log(logging.INFO, "Loaded chats", {}, count=len(self.state.chats))

    def _persist(self) -> None:
        try:
            self._store.save(self.state.chats)
        except StoreError as e:
            self._log(logging.ERROR, "Failed to persist chats", {}, error=e.message)

    # ---- 输入与视图 ----

    def switch_backend(self, backend: ChatBackend) -> None:
        if self.state.sending:
            raise ValidationError(code="SEND_IN_FLIGHT", message="Cannot switch backend while sending")
        self._backend = backend
        self._log(logging.INFO, "Switched backend", {}, provider=getattr(backend, "name", ""))

    def set_input(self, text: str) -> None:
        self.state.input = text
        self._notify()

    def use_suggestion(self, text: str) -> None:
        self.set_input(text)

    def attach(self, attachments: Iterable[Attachment]) -> None:
        self.state.attachments.extend(attachments)
        self._notify()

    def clear_attachments(self) -> None:
        self.state.attachments = []
        self._notify()

    def new_chat(self) -> None:
        """清空当前视图；真正的会话在下一次发送时才创建。"""

        self.state.current_chat_id = None
        self.state.messages = []
        self.state.suggestions = []
        self.state.error = None
        self._notify()

    def select_chat(self, chat_id: str) -> Chat:
        chat = self.state.find_chat(chat_id)
        if chat is None:
            raise ValidationError(code="CHAT_NOT_FOUND", message=f"Chat not found: {chat_id}")
        if chat.id != self.state.current_chat_id:
            # 建议只属于原会话
            self.state.suggestions = []
        self.state.current_chat_id = chat.id
        self.state.messages = list(chat.messages)
        self._notify()
        return chat

    def delete_chat(self, chat_id: str) -> None:
        """删除整个会话（不支持删除单条消息）。"""

        before = len(self.state.chats)
        self.state.chats = [c for c in self.state.chats if c.id != chat_id]
        if len(self.state.chats) == before:
            raise ValidationError(code="CHAT_NOT_FOUND", message=f"Chat not found: {chat_id}")
        self.state.streaming_by_chat.pop(chat_id, None)
        if self.state.current_chat_id == chat_id:
            self.state.current_chat_id = None
            self.state.messages = []
            self.state.suggestions = []
        self._persist()
        self._notify()

    # ---- 发送生命周期 ----

    def abort(self) -> bool:
        """触发当前发送的取消句柄；空闲时什么都不做。"""

        if self._cancel is None:
            return False
        self._cancel.cancel()
        self._log(logging.INFO, "Abort requested", {}, chat_id=self.state.current_chat_id)
        return True

    async def submit(self) -> Optional[Message]:
        """发送当前输入，返回提交的 assistant 消息；忽略、取消或失败时返回 None。"""

        state = self.state
        if state.sending:
            self._log(logging.INFO, "Submit ignored, send already in flight", {})
            return None
        text = state.input
        attachments = list(state.attachments)
        if not text.strip() and not attachments:
            return None
        if self._auth is not None and self._auth.user is None:
            self._show_error(AUTH_REQUIRED)
            return None

        # 在第一个挂起点之前置位，保证并发 submit 只有一个生效
        state.sending = True
        state.send_state = SendState.PENDING
        state.generation += 1
        cancel = CancellationToken()
        self._cancel = cancel

        chat = state.current_chat
        if chat is None:
            chat = Chat(id=new_id(), title=generate_title_from_message(text))
            state.chats.append(chat)
            state.current_chat_id = chat.id
            state.messages = []
        ticket = SendTicket(generation=state.generation, chat_id=chat.id)
        log_ctx: Dict[str, Any] = {
            "chat_id": chat.id,
            "generation": ticket.generation,
            "provider": getattr(self._backend, "name", ""),
        }

        user_msg = Message.user(annotate_prompt(text, attachments))
        if not chat.messages:
            chat.title = generate_title_from_message(user_msg.content)
        state.messages.append(user_msg)
        chat.append(user_msg)
        state.error = None
        state.suggestions = []
        state.streaming_by_chat.pop(chat.id, None)
        self._persist()
        self._notify()

        payload = self.build_payload(chat)
        streaming = supports_streaming(self._backend)
        self._log(logging.INFO, "Send started", log_ctx, streaming=streaming, attachments=len(attachments))

        try:
            if streaming:
                # 累积器只在该会话有进行中的流时存在
                state.streaming_by_chat[chat.id] = ""
                state.is_streaming = True
                state.send_state = SendState.STREAMING
                self._notify()
            reply = await handle_user_input(
                self._backend,
                payload,
                cancel=cancel,
                on_chunk=self._chunk_handler(ticket) if streaming else None,
            )
            cancel.raise_if_cancelled()
            if streaming and not reply.content:
                state.streaming_by_chat.pop(chat.id, None)
                state.send_state = SendState.IDLE
                self._log(logging.INFO, "Stream finished without content", log_ctx)
                return None

            self._commit(ticket, reply)
            self._log(logging.INFO, "Send committed", log_ctx, message_id=reply.id)
            await self._enrich(ticket, reply.content)
            self._auto_scroll(force=True)
            return reply
        except StreamCancelled:
            state.send_state = SendState.ABORTED
            self._log(
                logging.INFO,
                "Send aborted",
                log_ctx,
                partial_chars=len(state.streaming_by_chat.get(chat.id, "")),
            )
            return None
        except BusinessError as e:
            self._fail(ticket, e.message or DEFAULT_ERROR, log_ctx, code=e.code, http_status=e.http_status)
            return None
        except Exception as e:
            self._fail(ticket, str(e) or DEFAULT_ERROR, log_ctx, code="UNEXPECTED", exc_type=type(e).__name__)
            return None
        finally:
            if self._cancel is cancel:
                self._cancel = None
            state.sending = False
            state.is_streaming = False
            self._notify()

    def build_payload(self, chat: Chat) -> str:
        """把会话历史拼成 "User: ... / Assistant: ..." 形式的上下文。"""

        max_context = getattr(self._settings, "max_context_messages", 20)
        history = chat.messages[-max_context:]
        return "\n".join(
            f"{'User' if m.role == 'user' else 'Assistant'}: {m.content}" for m in history
        )

    async def enrich_title(self, chat_id: str, reply_text: str) -> str:
        """仅在标题仍是占位标题时请求新标题；已确定的标题不会被覆盖。"""

        chat = self.state.find_chat(chat_id)
        if chat is None or not reply_text:
            return chat.title if chat else ""
        if not is_placeholder_title(chat.title):
            return chat.title
        title = await request_title(self._backend, reply_text)
        # 等待期间会话可能被删除或已被改写
        chat = self.state.find_chat(chat_id)
        if chat is None:
            return title
        if is_placeholder_title(chat.title):
            chat.title = title
            self._persist()
            self._notify()
        return chat.title

    # ---- 内部迁移 ----

    def _chunk_handler(self, ticket: SendTicket) -> Callable[[str], None]:
        def on_chunk(chunk: str) -> None:
            if ticket.generation != self.state.generation:
                return
            accumulated = self.state.streaming_by_chat.get(ticket.chat_id, "") + chunk
            self.state.streaming_by_chat[ticket.chat_id] = accumulated
            self._observer.on_chunk(ticket.chat_id, accumulated)
            if self._is_viewing(ticket):
                self._auto_scroll(force=False)

        return on_chunk

    def _commit(self, ticket: SendTicket, reply: Message) -> None:
        state = self.state
        chat = state.find_chat(ticket.chat_id)
        if chat is not None:
            chat.append(reply)
        if self._is_viewing(ticket):
            state.messages.append(reply)
        state.streaming_by_chat.pop(ticket.chat_id, None)
        state.input = ""
        state.attachments = []
        state.send_state = SendState.COMMITTED
        self._persist()
        self._observer.on_commit(ticket.chat_id, reply)
        self._notify()

    async def _enrich(self, ticket: SendTicket, reply_text: str) -> None:
        if not reply_text:
            return
        await self.enrich_title(ticket.chat_id, reply_text)
        suggestions = await request_suggestions(self._backend, reply_text)
        if self._is_viewing(ticket):
            self.state.suggestions = suggestions
            self._observer.on_suggestions(suggestions)
            self._notify()

    def _fail(self, ticket: SendTicket, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        self.state.streaming_by_chat.pop(ticket.chat_id, None)
        self.state.send_state = SendState.ERROR
        self._log(logging.ERROR, "Send failed", log_ctx, error=message, **fields)
        self._show_error(message)

    def _show_error(self, message: str) -> None:
        self.state.error = message
        self._observer.on_error(message)
        self._notify()

    def _is_current(self, ticket: SendTicket) -> bool:
        return ticket.generation == self.state.generation

    def _is_viewing(self, ticket: SendTicket) -> bool:
        return self._is_current(ticket) and self.state.current_chat_id == ticket.chat_id

    def _auto_scroll(self, force: bool) -> None:
        if force or self._observer.is_at_bottom():
            self._observer.scroll_to_bottom()

    def _notify(self) -> None:
        self._observer.on_state_change(self.state)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
