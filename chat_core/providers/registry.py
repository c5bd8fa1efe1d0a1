"""Provider 与模型配置。

本模块将“任务名”与“具体厂商模型名”解耦：

- task：代码里使用的统一任务名，例如 "chat"、"image"、"summarize"、"transcribe"。
- provider_model：厂商实际提供的模型 ID，例如 "facebook/bart-large-cnn"。

适配器只关心任务名，具体用哪个底层模型由这里集中配置，便于后续升级或切换。
OpenAI / Ollama 的模型名允许通过 Settings 覆盖。"""

from dataclasses import dataclass
from typing import Dict, Mapping


@dataclass
class ModelConfig:
    """单个任务的模型配置。"""

    task: str
    provider_model: str


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]


OLLAMA_CONFIG = ProviderConfig(
    name="ollama",
    base_url="http://localhost:11434",
    models={
        "chat": ModelConfig(task="chat", provider_model="llama3"),
    },
)

OPENAI_CONFIG = ProviderConfig(
    name="openai",
    base_url="https://api.openai.com/v1",
    models={
        "chat": ModelConfig(task="chat", provider_model="gpt-4o"),
        "image": ModelConfig(task="image", provider_model="dall-e-3"),
        "transcribe": ModelConfig(task="transcribe", provider_model="whisper-1"),
    },
)

# Hugging Face：对话走 router（OpenAI 兼容格式），其余任务走 inference 接口
HUGGINGFACE_CONFIG = ProviderConfig(
    name="huggingface",
    base_url="https://api-inference.huggingface.co",
    models={
        "chat": ModelConfig(task="chat", provider_model="mistralai/Mistral-7B-Instruct-v0.2:featherless-ai"),
        "image": ModelConfig(task="image", provider_model="stabilityai/stable-diffusion-2"),
        "summarize": ModelConfig(task="summarize", provider_model="facebook/bart-large-cnn"),
        "transcribe": ModelConfig(task="transcribe", provider_model="openai/whisper-small"),
    },
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "ollama": OLLAMA_CONFIG,
    "openai": OPENAI_CONFIG,
    "huggingface": HUGGINGFACE_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
