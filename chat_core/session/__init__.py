"""会话层：输入编排、会话控制器与标题/建议补全。"""

from chat_core.session.controller import ChatSession
from chat_core.session.input_handler import annotate_prompt, handle_user_input
from chat_core.session.state import SendState, SendTicket, SessionState

__all__ = [
    "ChatSession",
    "SendState",
    "SendTicket",
    "SessionState",
    "annotate_prompt",
    "handle_user_input",
]
