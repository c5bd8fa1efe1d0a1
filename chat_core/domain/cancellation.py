"""取消句柄。

每次发送操作持有一个 CancellationToken；UI 侧调用 cancel()，
适配器与编排层通过 cancelled / wait() 观察取消信号。
"""

import asyncio

from chat_core.domain.exceptions import StreamCancelled


class CancellationToken:
    """一次性取消信号，触发后不可复位。"""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise StreamCancelled()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"
