"""输入编排：所有对 backend 的调用都经过 handle_user_input。

无论 backend 是否支持流式，调用方拿到的都是一条 Message。
"""

from typing import Callable, List, Optional, Sequence

from chat_core.domain.cancellation import CancellationToken
from chat_core.domain.exceptions import StreamCancelled
from chat_core.domain.models import Attachment, Message
from chat_core.providers.base import ChatBackend, await_or_cancel, supports_streaming


def annotate_prompt(prompt: str, attachments: Sequence[Attachment] = ()) -> str:
    """有附件时在提示词末尾追加文件名清单，附件本身不上传。"""

    if not attachments:
        return prompt
    names = ", ".join(a.name for a in attachments)
    return f"{prompt}\n[Attached: {names}]"


async def handle_user_input(
    backend: ChatBackend,
    prompt: str,
    attachments: Sequence[Attachment] = (),
    cancel: Optional[CancellationToken] = None,
    on_chunk: Optional[Callable[[str], None]] = None,
) -> Message:
    """把一次用户输入交给 backend。

    - 提供了取消句柄且 backend 支持流式时走 stream_message：内部累积增量（并转发给
      on_chunk），返回 backend 给出的最终消息；backend 未给出时用累积文本构造一条。
    - 否则走 send_message；若提供了取消句柄，取消时中断等待。
    - 取消时抛出 StreamCancelled，由调用方静默处理。
    """

    content = annotate_prompt(prompt, attachments)

    if cancel is not None and supports_streaming(backend):
        pieces: List[str] = []
        final: List[Optional[Message]] = []

        def collect(chunk: str) -> None:
            pieces.append(chunk)
            if on_chunk is not None:
                on_chunk(chunk)

        def complete(message: Optional[Message]) -> None:
            final.append(message)

        await backend.stream_message(content, collect, complete, cancel)  # type: ignore[attr-defined]
        if cancel.cancelled:
            raise StreamCancelled(partial="".join(pieces))
        if final and final[0] is not None:
            return final[0]
        return Message.assistant("".join(pieces))

    return await await_or_cancel(backend.send_message(content), cancel)
