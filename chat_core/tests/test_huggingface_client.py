import base64

import pytest

from chat_core.domain.exceptions import ApiError, ValidationError
from chat_core.providers.huggingface_client import HuggingFaceClient

from conftest import FakeResponse, SettingsStub


@pytest.mark.asyncio
async def test_hf_chat_uses_router(fake_http):
    fake_http.queue(FakeResponse(json_data={"choices": [{"message": {"content": "hey"}}]}))
    client = HuggingFaceClient(SettingsStub())

    msg = await client.send_message("hello")

    assert msg.content == "hey"
    call = fake_http.calls[0]
    assert call["url"] == "https://router.example.com/v1/chat/completions"
    assert call["headers"]["Authorization"] == "Bearer hf-test-token"
    assert call["json"]["messages"][0]["content"] == "hello"


@pytest.mark.asyncio
async def test_hf_summarize(fake_http):
    fake_http.queue(FakeResponse(json_data=[{"summary_text": "short version"}]))
    client = HuggingFaceClient(SettingsStub())

    assert await client.summarize("long text") == "short version"
    call = fake_http.calls[0]
    assert call["url"] == "https://inference.example.com/models/facebook/bart-large-cnn"
    assert call["json"] == {"inputs": "long text"}


@pytest.mark.asyncio
async def test_hf_image_bytes_become_data_url(fake_http):
    fake_http.queue(FakeResponse(content=b"\x89PNG", headers={"content-type": "image/png"}))
    client = HuggingFaceClient(SettingsStub())

    url = await client.generate_image("sunset")

    assert url == "data:image/png;base64," + base64.b64encode(b"\x89PNG").decode("ascii")


@pytest.mark.asyncio
async def test_hf_image_json_url(fake_http):
    fake_http.queue(
        FakeResponse(
            json_data={"url": "https://cdn.example.com/a.png"},
            headers={"content-type": "application/json; charset=utf-8"},
        )
    )
    client = HuggingFaceClient(SettingsStub())
    assert await client.generate_image("sunset") == "https://cdn.example.com/a.png"


@pytest.mark.asyncio
async def test_hf_image_json_without_url_is_an_error(fake_http):
    fake_http.queue(
        FakeResponse(json_data={"error": "queued"}, headers={"content-type": "application/json"})
    )
    client = HuggingFaceClient(SettingsStub())

    with pytest.raises(ApiError) as exc_info:
        await client.generate_image("sunset")

    assert exc_info.value.code == "NO_IMAGE_URL"


@pytest.mark.asyncio
async def test_hf_transcribe_list_result_without_content_type(fake_http):
    fake_http.queue(FakeResponse(json_data=[{"text": "spoken words"}]))
    client = HuggingFaceClient(SettingsStub())

    text = await client.transcribe_audio(("a.wav", b"RIFF"))

    assert text == "spoken words"
    call = fake_http.calls[0]
    assert "Content-Type" not in call["headers"]
    assert call["files"] == {"file": ("a.wav", b"RIFF")}


@pytest.mark.asyncio
async def test_hf_error_message_names_task_and_status(fake_http):
    fake_http.queue(FakeResponse(status_code=503, text="model loading"))
    client = HuggingFaceClient(SettingsStub())

    with pytest.raises(ApiError) as exc_info:
        await client.generate_image("sunset")

    assert exc_info.value.message == "HF image error 503: model loading"
    assert exc_info.value.http_status == 503


@pytest.mark.asyncio
async def test_hf_missing_token(fake_http):
    client = HuggingFaceClient(SettingsStub(hf_api_key=None))
    with pytest.raises(ValidationError):
        await client.summarize("text")
    assert fake_http.calls == []
