"""任务分发 backend。

按提示词开头的关键字（不区分大小写）把请求分发给不同任务，按固定优先级匹配：

1. "generate image" -> 图像生成，回复内容为 `![image](<url>)`
2. "summarize"      -> 文本摘要
3. "transcribe"     -> 转写本地音频文件（剩余文本为文件路径）
4. 其他             -> 默认对话 backend

命中的关键字会从剩余文本中去掉并 strip，作为任务的输入。
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from chat_core.config.settings import settings
from chat_core.domain.exceptions import ValidationError
from chat_core.domain.models import Message
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.base import ChatBackend
from chat_core.providers.huggingface_client import HuggingFaceClient

IMAGE_KEYWORD = "generate image"
SUMMARIZE_KEYWORD = "summarize"
TRANSCRIBE_KEYWORD = "transcribe"

# 匹配顺序即优先级
ROUTES: Tuple[Tuple[str, str], ...] = (
    (IMAGE_KEYWORD, "image"),
    (SUMMARIZE_KEYWORD, "summarize"),
    (TRANSCRIBE_KEYWORD, "transcribe"),
)


@dataclass(frozen=True)
class Route:
    task: str
    payload: str


def route_prompt(content: str) -> Route:
    """根据提示词前缀决定任务类型，并去掉关键字。"""

    normalized = content.lstrip()
    lower = normalized.lower()
    for keyword, task in ROUTES:
        if lower.startswith(keyword):
            return Route(task=task, payload=normalized[len(keyword):].strip())
    return Route(task="chat", payload=content)


class BrainClient:
    name = "brain"
    supports_streaming = False

    def __init__(
        self,
        cfg=settings,
        tasks: Optional[HuggingFaceClient] = None,
        chat_backend: Optional[ChatBackend] = None,
    ):
        self._settings = cfg
        self._tasks = tasks or HuggingFaceClient(cfg)
        # 默认对话走 HF chat，也可以注入 OpenAIClient 等
        self._chat_backend = chat_backend or self._tasks

    async def send_message(self, content: str) -> Message:
        route = route_prompt(content)
        logger.info("Routing prompt", extra={"extra": {"provider": self.name, "task": route.task}})

        if route.task == "image":
            url = await self._tasks.generate_image(route.payload)
            return Message.assistant(f"![image]({url})")

        if route.task == "summarize":
            return Message.assistant(await self._tasks.summarize(route.payload))

        if route.task == "transcribe":
            path = Path(route.payload).expanduser()
            if not route.payload or not path.is_file():
                raise ValidationError(code="AUDIO_NOT_FOUND", message=f"Audio file not found: {route.payload!r}")
            return Message.assistant(await self._tasks.transcribe_audio(path))

        return await self._chat_backend.send_message(route.payload)
