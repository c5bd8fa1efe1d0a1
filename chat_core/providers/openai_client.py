"""OpenAI 兼容的托管对话接口适配器。

本模块负责：

1. 把一段用户文本转换为 chat/completions 请求。
2. 调用 HTTP 接口并处理网络/API 异常。
3. 从多种可能的响应结构中提取回复正文（先命中者优先）。
4. 流式模式下解析 SSE（data: 行，[DONE] 结束），逐段产出增量文本。

另外提供图像生成与语音转写两个一次性调用，它们不属于 backend 协议，
由 ConvenienceClient 对外暴露。
"""

import json
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional, Tuple, Union

import httpx

from chat_core.config.settings import settings
from chat_core.domain.cancellation import CancellationToken
from chat_core.domain.exceptions import ApiError, StreamCancelled, ValidationError
from chat_core.domain.models import Message
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers._http import async_client, check_response, network_error
from chat_core.providers.base import ChunkCallback, CompleteCallback, pump_stream
from chat_core.providers.registry import OPENAI_CONFIG

AudioInput = Union[str, Path, Tuple[str, bytes]]


def extract_reply_text(data: Dict[str, Any]) -> str:
    """非流式响应：choices[0].message.content，其次 choices[0].text。"""

    choices = data.get("choices") or []
    choice = choices[0] if choices and isinstance(choices[0], dict) else {}
    message = choice.get("message") or {}
    content = message.get("content")
    if content is None:
        content = choice.get("text")
    return content or ""


def extract_delta_text(chunk: Dict[str, Any]) -> str:
    """流式增量：依次尝试 delta.content、text、message.content。"""

    choices = chunk.get("choices") or []
    choice = choices[0] if choices and isinstance(choices[0], dict) else {}
    for value in (
        (choice.get("delta") or {}).get("content"),
        choice.get("text"),
        (choice.get("message") or {}).get("content"),
    ):
        if value is not None:
            return value
    return ""


class OpenAIClient:
    """OpenAI 兼容 backend 客户端实现。"""

    name = "openai"
    supports_streaming = True

    def __init__(self, cfg=settings):
        # Settings 里包含 base_url、api_key、模型名、超时等配置
        self._settings = cfg

    # ---- 非流式 ----

    async def send_message(self, content: str) -> Message:
        return Message.assistant(await self.generate_text(content))

    async def generate_text(self, prompt: str) -> str:
        """执行一次非流式对话，返回正文文本。"""

        data = await self._post_json("/chat/completions", self._build_payload(prompt, stream=False))
        return extract_reply_text(data)

    # ---- 流式 ----

    async def stream(self, content: str, cancel: Optional[CancellationToken] = None) -> AsyncIterator[str]:
        payload = self._build_payload(content, stream=True)
        try:
            async with async_client(self._settings) as client:
                async with client.stream(
                    "POST",
                    f"{self._base}/chat/completions",
                    json=payload,
                    headers=self._headers(),
                ) as resp:
                    await check_response(resp, "OpenAI", streamed=True)
                    async for line in resp.aiter_lines():
                        if cancel is not None and cancel.cancelled:
                            return
                        if not line:
                            continue
                        data_str = line
                        if data_str.startswith("data:"):
                            data_str = data_str[5:].strip()
                        else:
                            data_str = data_str.strip()
                        if not data_str:
                            continue
                        if data_str == "[DONE]":
                            return
                        try:
                            chunk = json.loads(data_str)
                        except json.JSONDecodeError as exc:
                            logger.warning(
                                "Skipping malformed stream line",
                                extra={"extra": {"provider": self.name, "line": data_str[:200], "error": str(exc)}},
                            )
                            continue
                        if not isinstance(chunk, dict):
                            logger.warning(
                                "Skipping non-object stream line",
                                extra={"extra": {"provider": self.name, "line": data_str[:200]}},
                            )
                            continue
                        delta = extract_delta_text(chunk)
                        if delta:
                            yield delta
        except httpx.RequestError as e:
            if cancel is not None and cancel.cancelled:
                raise StreamCancelled() from e
            raise network_error("OpenAI", e)

    async def stream_message(
        self,
        content: str,
        on_chunk: ChunkCallback,
        on_complete: Optional[CompleteCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        await pump_stream(self.stream(content, cancel), on_chunk, on_complete, cancel, provider=self.name)

    # ---- 一次性辅助调用 ----

    async def generate_image(self, prompt: str) -> str:
        """生成图像，返回图片 URL。"""

        model = getattr(self._settings, "openai_image_model", None) or OPENAI_CONFIG.models["image"].provider_model
        data = await self._post_json(
            "/images/generations",
            {"model": model, "prompt": prompt, "size": "1024x1024"},
        )
        items = data.get("data") or []
        url = items[0].get("url") if items and isinstance(items[0], dict) else None
        if not url:
            raise ApiError(code="NO_IMAGE_URL", message="No image URL returned from OpenAI", http_status=502)
        return url

    async def transcribe_audio(self, audio: AudioInput) -> str:
        """语音转写。multipart 上传，不手动设置 Content-Type。"""

        filename, blob = read_audio(audio)
        model = (
            getattr(self._settings, "openai_transcribe_model", None)
            or OPENAI_CONFIG.models["transcribe"].provider_model
        )
        try:
            async with async_client(self._settings) as client:
                resp = await client.post(
                    f"{self._base}/audio/transcriptions",
                    files={"file": (filename, blob)},
                    data={"model": model},
                    headers={"Authorization": f"Bearer {self._api_key()}"},
                )
        except httpx.RequestError as e:
            raise network_error("OpenAI", e)
        await check_response(resp, "OpenAI")
        return (resp.json() or {}).get("text") or ""

    # ---- 辅助方法 ----

    @property
    def _base(self) -> str:
        base = getattr(self._settings, "openai_base_url", None) or OPENAI_CONFIG.base_url
        return base.rstrip("/")

    def _api_key(self) -> str:
        key = getattr(self._settings, "openai_api_key", None)
        if not key:
            # 配置缺失走 ValidationError，方便上层统一处理
            raise ValidationError(code="MISSING_API_KEY", message="OPENAI_API_KEY not set")
        return key

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key()}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, content: str, stream: bool) -> dict:
        model = getattr(self._settings, "openai_model", None) or OPENAI_CONFIG.models["chat"].provider_model
        return {
            "model": model,
            "messages": [{"role": "user", "content": content}],
            "stream": stream,
        }

    async def _post_json(self, path: str, payload: dict) -> Dict[str, Any]:
        headers = self._headers()
        try:
            async with async_client(self._settings) as client:
                resp = await client.post(f"{self._base}{path}", json=payload, headers=headers)
        except httpx.RequestError as e:
            raise network_error("OpenAI", e)
        await check_response(resp, "OpenAI")
        data = resp.json()
        return data if isinstance(data, dict) else {}


def read_audio(audio: AudioInput) -> Tuple[str, bytes]:
    """把文件路径或 (文件名, 字节) 统一为 multipart 所需的二元组。"""

    if isinstance(audio, tuple):
        return audio
    path = Path(audio)
    if not path.is_file():
        raise ValidationError(code="AUDIO_NOT_FOUND", message=f"Audio file not found: {path}")
    return path.name, path.read_bytes()
