"""Chat Core 顶层包。

该包提供多 backend 聊天客户端的核心实现，
包括配置加载、领域模型、backend 适配、输入编排、
会话控制器（流式/取消/标题与建议补全）与快照持久化等能力。
"""

from chat_core.providers import create_backend
from chat_core.session import ChatSession, handle_user_input

__all__ = ["ChatSession", "create_backend", "handle_user_input"]
