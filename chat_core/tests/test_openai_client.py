import asyncio
import logging

import pytest

from chat_core.domain.cancellation import CancellationToken
from chat_core.domain.exceptions import ApiError, RateLimitError, ValidationError
from chat_core.providers.openai_client import OpenAIClient, extract_delta_text, extract_reply_text

from conftest import HANG, FakeResponse, SettingsStub, wait_until


def test_extract_reply_text_fallbacks():
    assert extract_reply_text({"choices": [{"message": {"content": "a"}}]}) == "a"
    assert extract_reply_text({"choices": [{"text": "b"}]}) == "b"
    assert extract_reply_text({"choices": []}) == ""
    assert extract_reply_text({}) == ""


def test_extract_delta_text_locations():
    assert extract_delta_text({"choices": [{"delta": {"content": "x"}}]}) == "x"
    assert extract_delta_text({"choices": [{"text": "y"}]}) == "y"
    assert extract_delta_text({"choices": [{"message": {"content": "z"}}]}) == "z"
    assert extract_delta_text({"choices": [{"delta": {}}]}) == ""


@pytest.mark.asyncio
async def test_openai_send_message(fake_http):
    fake_http.queue(FakeResponse(json_data={"choices": [{"message": {"content": "pong"}}]}))
    client = OpenAIClient(SettingsStub())

    msg = await client.send_message("ping")

    assert msg.content == "pong"
    call = fake_http.calls[0]
    assert call["url"] == "https://api.example.com/v1/chat/completions"
    assert call["headers"]["Authorization"] == "Bearer sk-test-key"
    assert call["json"]["messages"] == [{"role": "user", "content": "ping"}]
    assert call["json"]["stream"] is False
    assert fake_http.client_kwargs["trust_env"] is False


@pytest.mark.asyncio
async def test_openai_sse_stream_parses_all_delta_shapes(fake_http):
    fake_http.queue(
        FakeResponse(
            lines=[
                'data: {"choices": [{"delta": {"content": "Hel"}}]}',
                "",
                ": keep-alive",
                'data: {"choices": [{"text": "lo"}]}',
                'data: {"choices": [{"message": {"content": " there"}}]}',
                'data: {"choices": [{"delta": {}}]}',
                "data: [DONE]",
                'data: {"choices": [{"delta": {"content": "ignored"}}]}',
            ]
        )
    )
    client = OpenAIClient(SettingsStub())
    chunks, finals = [], []

    await client.stream_message("hi", chunks.append, finals.append)

    assert chunks == ["Hel", "lo", " there"]
    assert finals[0].content == "Hello there"
    assert fake_http.calls[0]["json"]["stream"] is True
    assert fake_http.closed_streams == 1


@pytest.mark.asyncio
async def test_openai_stream_logs_malformed_lines(fake_http, caplog):
    fake_http.queue(
        FakeResponse(
            lines=[
                "data: {broken",
                "data: [1, 2]",
                'data: {"choices": [{"delta": {"content": "ok"}}]}',
                "data: [DONE]",
            ]
        )
    )
    client = OpenAIClient(SettingsStub())
    chunks = []

    with caplog.at_level(logging.WARNING, logger="chat_core"):
        await client.stream_message("hi", chunks.append)

    assert chunks == ["ok"]
    messages = [r.getMessage() for r in caplog.records]
    assert "Skipping malformed stream line" in messages
    assert "Skipping non-object stream line" in messages


@pytest.mark.asyncio
async def test_openai_missing_key_raises_validation_error(fake_http):
    client = OpenAIClient(SettingsStub(openai_api_key=""))
    with pytest.raises(ValidationError) as exc_info:
        await client.send_message("hi")
    assert exc_info.value.code == "MISSING_API_KEY"
    assert fake_http.calls == []


@pytest.mark.asyncio
async def test_openai_rate_limit(fake_http):
    fake_http.queue(FakeResponse(status_code=429, text="slow down"))
    client = OpenAIClient(SettingsStub())
    with pytest.raises(RateLimitError):
        await client.send_message("hi")


@pytest.mark.asyncio
async def test_openai_cancel_mid_stream_releases_connection(fake_http):
    fake_http.queue(
        FakeResponse(lines=['data: {"choices": [{"delta": {"content": "Hi"}}]}', HANG])
    )
    client = OpenAIClient(SettingsStub())
    token = CancellationToken()
    chunks, finals = [], []

    task = asyncio.ensure_future(client.stream_message("hi", chunks.append, finals.append, token))
    await wait_until(lambda: chunks == ["Hi"])
    token.cancel()
    await asyncio.wait_for(task, timeout=2)

    assert finals == []
    assert fake_http.closed_streams == 1


@pytest.mark.asyncio
async def test_openai_generate_image(fake_http):
    fake_http.queue(FakeResponse(json_data={"data": [{"url": "https://img.example.com/1.png"}]}))
    client = OpenAIClient(SettingsStub())

    url = await client.generate_image("a cat")

    assert url == "https://img.example.com/1.png"
    call = fake_http.calls[0]
    assert call["url"].endswith("/images/generations")
    assert call["json"]["model"] == "image-test"


@pytest.mark.asyncio
async def test_openai_generate_image_without_url(fake_http):
    fake_http.queue(FakeResponse(json_data={"data": []}))
    client = OpenAIClient(SettingsStub())
    with pytest.raises(ApiError) as exc_info:
        await client.generate_image("a cat")
    assert exc_info.value.code == "NO_IMAGE_URL"


@pytest.mark.asyncio
async def test_openai_transcribe_uses_multipart_without_content_type(fake_http):
    fake_http.queue(FakeResponse(json_data={"text": "hello world"}))
    client = OpenAIClient(SettingsStub())

    text = await client.transcribe_audio(("clip.mp3", b"ID3"))

    assert text == "hello world"
    call = fake_http.calls[0]
    assert call["url"].endswith("/audio/transcriptions")
    assert call["files"] == {"file": ("clip.mp3", b"ID3")}
    assert call["data"] == {"model": "whisper-test"}
    assert "Content-Type" not in call["headers"]


@pytest.mark.asyncio
async def test_openai_transcribe_missing_file():
    client = OpenAIClient(SettingsStub())
    with pytest.raises(ValidationError) as exc_info:
        await client.transcribe_audio("/nonexistent/clip.mp3")
    assert exc_info.value.code == "AUDIO_NOT_FOUND"
