"""Backend 抽象接口。

上层（输入编排、会话控制器）不直接依赖具体厂商的 HTTP 接口，而是依赖此协议：

- 每个厂商实现一个 backend 适配器（如 OllamaClient、OpenAIClient）。
- send_message 为必选能力；流式能力通过 supports_streaming 标记声明，
  适配器提供 stream()（异步生成器）与 stream_message()（回调形式）。
- 调用方用 supports_streaming(backend) 探测能力，不支持时回退到 send_message。

本模块同时提供流式驱动工具 pump_stream，保证所有适配器遵守同一套流式约定：
chunk 按到达顺序回调、完成回调最多一次、取消后不再回调、任何退出路径都释放连接。
"""

import asyncio
from typing import AsyncIterator, Awaitable, Callable, Optional, Protocol, TypeVar

from chat_core.domain.cancellation import CancellationToken
from chat_core.domain.exceptions import StreamCancelled
from chat_core.domain.models import Message
from chat_core.infrastructure.logging.logger import logger

ChunkCallback = Callable[[str], None]
CompleteCallback = Callable[[Optional[Message]], None]

T = TypeVar("T")


class ChatBackend(Protocol):
    """Backend 适配器协议。

    实现者需要提供：
    - name: backend 名称，用于日志。
    - supports_streaming: 是否具备流式能力。
    - send_message(content): 执行一次非流式调用，返回 assistant 消息；失败时抛出 BusinessError。
    """

    name: str
    supports_streaming: bool

    async def send_message(self, content: str) -> Message:
        ...


class StreamingBackend(ChatBackend, Protocol):
    """具备流式能力的 backend。"""

    def stream(self, content: str, cancel: Optional[CancellationToken] = None) -> AsyncIterator[str]:
        """逐步产出非空文本增量。"""

        ...

    async def stream_message(
        self,
        content: str,
        on_chunk: ChunkCallback,
        on_complete: Optional[CompleteCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        ...


def supports_streaming(backend: object) -> bool:
    """能力探测：声明了流式能力且确实提供 stream_message 时才返回 True。"""

    return bool(getattr(backend, "supports_streaming", False)) and callable(
        getattr(backend, "stream_message", None)
    )


async def _anext(iterator: AsyncIterator[T]) -> T:
    return await iterator.__anext__()


async def next_chunk(iterator: AsyncIterator[T], cancel: Optional[CancellationToken] = None) -> T:
    """读取下一个增量；若取消信号先到达，中断挂起中的读取并抛出 StreamCancelled。

    迭代结束时抛出 StopAsyncIteration。
    """

    if cancel is None:
        return await iterator.__anext__()
    cancel.raise_if_cancelled()
    read_task = asyncio.ensure_future(_anext(iterator))
    cancel_task = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait({read_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        read_task.cancel()
        cancel_task.cancel()
        await asyncio.wait({read_task, cancel_task})
        raise
    if read_task in done:
        cancel_task.cancel()
        return read_task.result()
    # 取消先到：等待读取任务真正结束，生成器随之关闭并释放连接
    read_task.cancel()
    await asyncio.wait({read_task})
    raise StreamCancelled()


async def await_or_cancel(awaitable: Awaitable[T], cancel: Optional[CancellationToken] = None) -> T:
    """等待一次性调用，若取消信号先到达则中断调用并抛出 StreamCancelled。"""

    if cancel is None:
        return await awaitable
    if cancel.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise StreamCancelled()
    work = asyncio.ensure_future(awaitable)
    cancel_task = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait({work, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        cancel_task.cancel()
        await asyncio.wait({work, cancel_task})
        raise
    if work in done:
        cancel_task.cancel()
        return work.result()
    work.cancel()
    await asyncio.wait({work})
    raise StreamCancelled()


async def pump_stream(
    chunks: AsyncIterator[str],
    on_chunk: ChunkCallback,
    on_complete: Optional[CompleteCallback] = None,
    cancel: Optional[CancellationToken] = None,
    provider: str = "",
) -> None:
    """把 stream() 产出的异步序列转换为回调形式的流式约定。

    - on_chunk 仅收到非空增量，按到达顺序调用；回调异常被记录后吞掉，不中断流。
    - 正常结束时 on_complete 最多调用一次，内容为所有增量的拼接；无内容时传 None。
    - 取消后直接返回，不再调用任何回调。
    - 无论正常结束、取消还是异常，都会关闭底层生成器。
    """

    pieces: list[str] = []
    try:
        while True:
            if cancel is not None and cancel.cancelled:
                break
            try:
                text = await next_chunk(chunks, cancel)
            except StopAsyncIteration:
                break
            if not text:
                continue
            pieces.append(text)
            try:
                on_chunk(text)
            except Exception as exc:
                logger.warning(
                    "on_chunk callback raised",
                    extra={"extra": {"provider": provider, "error": repr(exc)}},
                )
    except StreamCancelled:
        logger.info("Stream cancelled", extra={"extra": {"provider": provider, "chunks": len(pieces)}})
        return
    finally:
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()

    if cancel is not None and cancel.cancelled:
        logger.info("Stream cancelled", extra={"extra": {"provider": provider, "chunks": len(pieces)}})
        return
    if on_complete is None:
        return
    content = "".join(pieces)
    try:
        on_complete(Message.assistant(content) if content else None)
    except Exception as exc:
        logger.warning(
            "on_complete callback raised",
            extra={"extra": {"provider": provider, "error": repr(exc)}},
        )
