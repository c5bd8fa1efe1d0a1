from datetime import datetime, timezone

import pytest

from chat_core.providers.local_client import LocalEchoClient

from conftest import SettingsStub


@pytest.mark.asyncio
async def test_local_client_echoes_after_latency():
    client = LocalEchoClient(SettingsStub(), latency=0.01)
    issued = datetime.now(timezone.utc)
    msg = await client.send_message("hello there")
    assert msg.role == "assistant"
    assert msg.content == "hello there"
    assert msg.timestamp > issued


def test_local_client_is_not_streaming():
    client = LocalEchoClient(SettingsStub(local_latency=0.25))
    assert client.supports_streaming is False
    assert client._latency == 0.25
