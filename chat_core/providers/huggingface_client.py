"""Hugging Face 多模态任务适配器。

提供四类一次性任务：

- chat: router 的 OpenAI 兼容 chat/completions 接口。
- image: 文生图，返回可直接嵌入 markdown 的 URL（二进制图片转为 data: URL；JSON 响应缺少 url 时报错）。
- summarize: 文本摘要，响应为 [{"summary_text": ...}]。
- transcribe: 语音转写，multipart 上传（不设置 Content-Type），响应为 {text} 或 [{text}]。

每个任务的 HTTP 失败都会抛出携带状态码与响应体的 ApiError，例如
"HF image error 503: <body>"。本适配器不支持流式。
"""

import base64
from typing import Any, Dict

import httpx

from chat_core.config.settings import settings
from chat_core.domain.exceptions import ApiError, ValidationError
from chat_core.domain.models import Message
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers._http import async_client, check_response, network_error
from chat_core.providers.openai_client import AudioInput, extract_reply_text, read_audio
from chat_core.providers.registry import HUGGINGFACE_CONFIG


class HuggingFaceClient:
    name = "huggingface"
    supports_streaming = False

    def __init__(self, cfg=settings):
        self._settings = cfg

    async def send_message(self, content: str) -> Message:
        return Message.assistant(await self.chat(content))

    async def chat(self, prompt: str) -> str:
        router = getattr(self._settings, "hf_router_url", None) or "https://router.huggingface.co"
        payload = {
            "model": self._model("chat"),
            "messages": [{"role": "user", "content": prompt}],
        }
        resp = await self._post("chat", f"{router.rstrip('/')}/v1/chat/completions", json=payload)
        data = resp.json()
        return extract_reply_text(data if isinstance(data, dict) else {})

    async def generate_image(self, prompt: str) -> str:
        resp = await self._post("image", self._model_url("image"), json={"inputs": prompt})
        content_type = (resp.headers.get("content-type") or "").split(";")[0].strip()
        if content_type == "application/json":
            data = resp.json()
            url = data.get("url") if isinstance(data, dict) else None
            if not url:
                raise ApiError(code="NO_IMAGE_URL", message="No image URL returned from HF image", http_status=502)
            return url
        encoded = base64.b64encode(resp.content).decode("ascii")
        return f"data:{content_type or 'image/png'};base64,{encoded}"

    async def summarize(self, text: str) -> str:
        resp = await self._post("summarise", self._model_url("summarize"), json={"inputs": text})
        data = resp.json()
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return data[0].get("summary_text") or ""
        return ""

    async def transcribe_audio(self, audio: AudioInput) -> str:
        filename, blob = read_audio(audio)
        resp = await self._post(
            "audio",
            self._model_url("transcribe"),
            files={"file": (filename, blob)},
            json_body=False,
        )
        data = resp.json()
        if isinstance(data, dict) and data.get("text") is not None:
            return data["text"]
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return data[0].get("text") or ""
        return ""

    # ---- 辅助方法 ----

    def _model(self, task: str) -> str:
        return HUGGINGFACE_CONFIG.models[task].provider_model

    def _model_url(self, task: str) -> str:
        base = getattr(self._settings, "hf_inference_url", None) or HUGGINGFACE_CONFIG.base_url
        return f"{base.rstrip('/')}/models/{self._model(task)}"

    def _headers(self, json_body: bool) -> Dict[str, str]:
        token = getattr(self._settings, "hf_api_key", None)
        if not token:
            raise ValidationError(code="MISSING_API_KEY", message="HF_API_KEY not set")
        headers = {"Authorization": f"Bearer {token}"}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def _post(self, task: str, url: str, json_body: bool = True, **kwargs: Any) -> httpx.Response:
        headers = self._headers(json_body)
        logger.info("Calling Hugging Face task", extra={"extra": {"provider": self.name, "task": task}})
        try:
            async with async_client(self._settings) as client:
                resp = await client.post(url, headers=headers, **kwargs)
        except httpx.RequestError as e:
            raise network_error(f"HF {task}", e)
        await check_response(resp, f"HF {task}")
        return resp
