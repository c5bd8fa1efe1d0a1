import pydantic
import pytest

from chat_core.config.settings import Settings


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ("OLLAMA_MODEL", "DEFAULT_PROVIDER", "OPENAI_API_KEY", "CHAT_CONFIG_FILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


def test_defaults(clean_env):
    cfg = Settings(_env_file=None)
    assert cfg.default_provider == "local"
    assert cfg.ollama_base_url == "http://localhost:11434"
    assert cfg.max_context_messages == 20


def test_environment_overrides(clean_env):
    clean_env.setenv("OLLAMA_MODEL", "mistral")
    clean_env.setenv("DEFAULT_PROVIDER", " Ollama ")
    cfg = Settings(_env_file=None)
    assert cfg.ollama_model == "mistral"
    assert cfg.default_provider == "ollama"


def test_yaml_config_file_has_lower_priority_than_env(clean_env, tmp_path):
    config = tmp_path / "chat.yaml"
    config.write_text("ollama_model: qwen2\nopenai_model: gpt-yaml\n", encoding="utf-8")
    clean_env.setenv("CHAT_CONFIG_FILE", str(config))
    clean_env.setenv("OPENAI_MODEL", "gpt-env")

    cfg = Settings(_env_file=None)

    assert cfg.ollama_model == "qwen2"
    assert cfg.openai_model == "gpt-env"


def test_short_api_key_is_rejected(clean_env):
    with pytest.raises(pydantic.ValidationError):
        Settings(_env_file=None, openai_api_key="short")
