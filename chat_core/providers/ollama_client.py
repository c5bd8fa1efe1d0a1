"""自托管模型服务（Ollama）适配器。

- URL: {base_url}/api/generate
- 请求体: {model, prompt, stream}
- 非流式：响应为单个 JSON 对象，正文在 response 字段。
- 流式：响应体为逐行 JSON（NDJSON），每行可带增量 response 文本与 done 结束标记；
  无法解析的行记录日志后跳过，不中断整个流。
"""

import json
from typing import AsyncIterator, Optional

import httpx

from chat_core.config.settings import settings
from chat_core.domain.cancellation import CancellationToken
from chat_core.domain.exceptions import ApiError
from chat_core.domain.models import Message
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers._http import async_client, check_response, network_error
from chat_core.providers.base import ChunkCallback, CompleteCallback, pump_stream
from chat_core.providers.registry import OLLAMA_CONFIG

STRUCTURED_PROMPT = """
You are a helpful assistant. Format your response as follows:
- Start with a short one-line **title** at the top
- Use Markdown headings (## for sections, ### for subsections)
- Include relevant **emojis** in headings and bullet points
- Bold key terms
- Use bullet points or numbered lists
- Keep content clear, structured, and easy to read

User prompt: {prompt}
"""


def build_structured_prompt(user_prompt: str) -> str:
    return STRUCTURED_PROMPT.format(prompt=user_prompt)


class OllamaClient:
    """Ollama backend，支持非流式与流式两种调用。"""

    name = "ollama"
    supports_streaming = True

    def __init__(self, cfg=settings):
        self._settings = cfg

    @property
    def _url(self) -> str:
        base = getattr(self._settings, "ollama_base_url", None) or OLLAMA_CONFIG.base_url
        return f"{base.rstrip('/')}/api/generate"

    # ---- 非流式 ----

    async def send_message(self, content: str) -> Message:
        payload = self._build_payload(content, stream=False)
        try:
            async with async_client(self._settings) as client:
                resp = await client.post(self._url, json=payload)
        except httpx.RequestError as e:
            raise network_error("Ollama", e)
        await check_response(resp, "Ollama")
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(code="BAD_RESPONSE", message=f"Ollama returned invalid JSON: {e}", http_status=502)
        return Message.assistant((data or {}).get("response") or "")

    # ---- 流式 ----

    async def stream(self, content: str, cancel: Optional[CancellationToken] = None) -> AsyncIterator[str]:
        payload = self._build_payload(content, stream=True)
        try:
            async with async_client(self._settings) as client:
                async with client.stream("POST", self._url, json=payload) as resp:
                    await check_response(resp, "Ollama", streamed=True)
                    async for line in resp.aiter_lines():
                        if cancel is not None and cancel.cancelled:
                            return
                        line = line.strip()
                        if not line:
                            continue
                        try:
                            data = json.loads(line)
                        except json.JSONDecodeError as exc:
                            logger.warning(
                                "Skipping malformed stream line",
                                extra={"extra": {"provider": self.name, "line": line[:200], "error": str(exc)}},
                            )
                            continue
                        if not isinstance(data, dict):
                            logger.warning(
                                "Skipping non-object stream line",
                                extra={"extra": {"provider": self.name, "line": line[:200]}},
                            )
                            continue
                        text = data.get("response")
                        if text:
                            yield text
                        if data.get("done"):
                            return
        except httpx.RequestError as e:
            raise network_error("Ollama", e)

    async def stream_message(
        self,
        content: str,
        on_chunk: ChunkCallback,
        on_complete: Optional[CompleteCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        await pump_stream(self.stream(content, cancel), on_chunk, on_complete, cancel, provider=self.name)

    # ---- 辅助方法 ----

    def _build_payload(self, content: str, stream: bool) -> dict:
        prompt = content
        if getattr(self._settings, "ollama_structured_prompt", True):
            prompt = build_structured_prompt(content)
        return {
            "model": getattr(self._settings, "ollama_model", None) or OLLAMA_CONFIG.models["chat"].provider_model,
            "prompt": prompt,
            "stream": stream,
        }
