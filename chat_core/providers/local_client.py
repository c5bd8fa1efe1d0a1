"""本地模拟 backend：固定延迟后原样回显输入，用于离线开发与演示。"""

import asyncio

from chat_core.config.settings import settings
from chat_core.domain.models import Message


class LocalEchoClient:
    name = "local"
    supports_streaming = False

    def __init__(self, cfg=settings, latency: float | None = None):
        self._settings = cfg
        self._latency = latency if latency is not None else getattr(cfg, "local_latency", 0.6)

    async def send_message(self, content: str) -> Message:
        await asyncio.sleep(self._latency)
        return Message.assistant(content)
