import pytest

from chat_core.domain.exceptions import ValidationError
from chat_core.providers import BACKENDS, create_backend, supports_streaming
from chat_core.providers.convenience import ConvenienceClient
from chat_core.providers.local_client import LocalEchoClient
from chat_core.providers.ollama_client import OllamaClient
from chat_core.providers.registry import PROVIDER_REGISTRY, get_provider_config

from conftest import FakeResponse, SettingsStub


def test_create_backend_uses_default_provider(monkeypatch):
    monkeypatch.setattr("chat_core.providers.settings", SettingsStub(default_provider="ollama"))
    assert isinstance(create_backend(), OllamaClient)


def test_create_backend_explicit_name_is_case_insensitive():
    backend = create_backend("LOCAL", SettingsStub())
    assert isinstance(backend, LocalEchoClient)
    assert backend.name == "local"


def test_create_backend_unknown_name():
    with pytest.raises(ValidationError) as exc_info:
        create_backend("nope", SettingsStub())
    assert exc_info.value.code == "UNKNOWN_BACKEND"


def test_streaming_capabilities():
    cfg = SettingsStub()
    streaming = {name for name in BACKENDS if supports_streaming(create_backend(name, cfg))}
    assert streaming == {"ollama", "openai"}


def test_registry_lookup():
    assert set(PROVIDER_REGISTRY) >= {"ollama", "openai", "huggingface"}
    hf = get_provider_config("huggingface")
    assert hf.models["summarize"].provider_model == "facebook/bart-large-cnn"


@pytest.mark.asyncio
async def test_convenience_client_passes_through(fake_http):
    fake_http.queue(FakeResponse(json_data={"choices": [{"message": {"content": "plain"}}]}))
    fake_http.queue(FakeResponse(json_data={"data": [{"url": "https://img.example.com/x.png"}]}))
    client = ConvenienceClient(SettingsStub())

    assert await client.generate_text("hi") == "plain"
    assert await client.generate_image("x") == "https://img.example.com/x.png"
    assert client.supports_streaming is False
