import asyncio
import os
import tempfile

# 日志写到临时目录，避免在工作目录下生成 logs/
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="chat-core-logs-"))

import pytest  # noqa: E402

HANG = object()


class SettingsStub:
    default_provider = "local"
    openai_api_key = "sk-test-key"
    openai_base_url = "https://api.example.com/v1"
    openai_model = "gpt-test"
    openai_image_model = "image-test"
    openai_transcribe_model = "whisper-test"
    hf_api_key = "hf-test-token"
    hf_router_url = "https://router.example.com"
    hf_inference_url = "https://inference.example.com"
    ollama_base_url = "http://ollama.local:11434"
    ollama_model = "llama3"
    ollama_structured_prompt = True
    local_latency = 0.0
    http_timeout = 1.0
    storage_root = ".storage"
    max_context_messages = 20

    def __init__(self, **overrides):
        for key, value in overrides.items():
            setattr(self, key, value)


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, text="", lines=(), content=b"", headers=None):
        self.status_code = status_code
        self._json = json_data
        self.text = text
        self._lines = list(lines)
        self.content = content
        self.headers = headers or {}
        self.read_called = False

    def json(self):
        return self._json

    async def aread(self):
        self.read_called = True
        return self.content

    async def aiter_lines(self):
        for line in self._lines:
            if line is HANG:
                await asyncio.Event().wait()
            yield line


class FakeHttp:
    """记录请求并按顺序返回预置响应的 httpx.AsyncClient 替身。"""

    def __init__(self):
        self.responses = []
        self.calls = []
        self.error = None
        self.closed_streams = 0

    def queue(self, response):
        self.responses.append(response)
        return response

    def client_class(self):
        http = self

        class StreamContext:
            def __init__(self, response):
                self._response = response

            async def __aenter__(self):
                if http.error is not None:
                    raise http.error
                return self._response

            async def __aexit__(self, *args):
                http.closed_streams += 1
                return False

        class Client:
            def __init__(self, *a, **kw):
                http.client_kwargs = kw

            async def __aenter__(self):
                return self

            async def __aexit__(self, *a):
                return False

            async def post(self, url, **kw):
                http.calls.append({"method": "POST", "url": url, **kw})
                if http.error is not None:
                    raise http.error
                return http.responses.pop(0)

            def stream(self, method, url, **kw):
                http.calls.append({"method": method, "url": url, **kw})
                return StreamContext(http.responses.pop(0))

        return Client


@pytest.fixture
def fake_http(monkeypatch):
    http = FakeHttp()
    monkeypatch.setattr("httpx.AsyncClient", http.client_class())
    return http


async def wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)
