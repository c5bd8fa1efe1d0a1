"""Backend 适配层。

该包下的模块负责：
- 定义 backend 抽象接口与流式驱动 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供各 backend 的具体实现 (local、ollama、openai、huggingface、brain、convenience)。
"""

from typing import Literal, Optional

from chat_core.config.settings import settings
from chat_core.domain.exceptions import ValidationError
from chat_core.providers.base import ChatBackend, supports_streaming
from chat_core.providers.brain_client import BrainClient
from chat_core.providers.convenience import ConvenienceClient
from chat_core.providers.huggingface_client import HuggingFaceClient
from chat_core.providers.local_client import LocalEchoClient
from chat_core.providers.ollama_client import OllamaClient
from chat_core.providers.openai_client import OpenAIClient

BACKENDS = {
    "local": LocalEchoClient,
    "ollama": OllamaClient,
    "openai": OpenAIClient,
    "huggingface": HuggingFaceClient,
    "brain": BrainClient,
    "convenience": ConvenienceClient,
}


def create_backend(name: Optional[str] = None, cfg=None) -> ChatBackend:
    """根据名称创建 backend 实例，默认取配置中的 default_provider。"""

    cfg = cfg or settings
    backend_name = (name or getattr(cfg, "default_provider", "local")).lower()
    factory = BACKENDS.get(backend_name)
    if factory is None:
        raise ValidationError(code="UNKNOWN_BACKEND", message=f"Unknown backend: {backend_name!r}")
    return factory(cfg)


BackendName = Literal["local", "ollama", "openai", "huggingface", "brain", "convenience"]

__all__ = ["BACKENDS", "BackendName", "ChatBackend", "create_backend", "supports_streaming"]
