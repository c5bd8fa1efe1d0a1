"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置，优先级依次降低。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("CHAT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Backend 选择 ----
    default_provider: str = Field(
        default="local",
        description="默认使用的 backend 名称：local、ollama、openai、huggingface、brain、convenience",
    )

    # OpenAI 兼容的托管对话接口
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI 兼容接口密钥")
    openai_base_url: str = Field(default="https://api.openai.com/v1", description="OpenAI 兼容接口基础URL")
    openai_model: str = Field(default="gpt-4o", description="对话模型")
    openai_image_model: str = Field(default="dall-e-3", description="图像生成模型")
    openai_transcribe_model: str = Field(default="whisper-1", description="语音转写模型")

    # Hugging Face 多模态任务接口
    hf_api_key: Optional[str] = Field(default=None, description="Hugging Face 访问令牌")
    hf_router_url: str = Field(default="https://router.huggingface.co", description="HF 对话路由地址")
    hf_inference_url: str = Field(
        default="https://api-inference.huggingface.co",
        description="HF 推理接口地址（图像/摘要/转写）",
    )

    # 本地自托管模型服务（Ollama）
    ollama_base_url: str = Field(default="http://localhost:11434", description="Ollama 服务地址")
    ollama_model: str = Field(default="llama3", description="Ollama 模型名")
    ollama_structured_prompt: bool = Field(default=True, description="是否为提示词附加格式化指令")

    # 本地模拟 backend
    local_latency: float = Field(default=0.6, ge=0.0, description="模拟回复延迟（秒）")

    http_timeout: float = Field(default=60.0, ge=1.0, description="HTTP 超时时间（秒）")
    storage_root: str = Field(default=".storage", description="存储根目录")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")
    max_context_messages: int = Field(default=20, ge=1, le=200, description="构造上下文时保留的最大消息数")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("openai_api_key", "hf_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("default_provider")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        return (v or "local").strip().lower()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
