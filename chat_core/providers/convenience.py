"""演示用组合 backend。

对话直接透传给主 OpenAIClient；另外把文本生成、图像生成、语音转写
作为协议之外的一次性调用暴露出来，错误原样向上传播。
"""

from typing import Optional

from chat_core.config.settings import settings
from chat_core.domain.models import Message
from chat_core.providers.openai_client import AudioInput, OpenAIClient


class ConvenienceClient:
    name = "convenience"
    supports_streaming = False

    def __init__(self, cfg=settings, primary: Optional[OpenAIClient] = None):
        self._primary = primary or OpenAIClient(cfg)

    async def send_message(self, content: str) -> Message:
        return await self._primary.send_message(content)

    async def generate_text(self, prompt: str) -> str:
        return await self._primary.generate_text(prompt)

    async def generate_image(self, prompt: str) -> str:
        return await self._primary.generate_image(prompt)

    async def transcribe_audio(self, audio: AudioInput) -> str:
        return await self._primary.transcribe_audio(audio)
