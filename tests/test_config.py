from vibecoder_agent.core.config import (
    DEFAULT_MODEL,
    DEFAULT_REQUEST_TIMEOUT,
    AgentSettings,
    model_for_mode,
)


def test_model_for_mode_uses_override(monkeypatch):
    monkeypatch.setenv("VIBECODER_MODEL_ARCHITECT", "gpt-5")
    assert model_for_mode("architect", "gpt-5-mini") == "gpt-5"


def test_model_for_mode_falls_back(monkeypatch):
    monkeypatch.delenv("VIBECODER_MODEL_FIXER", raising=False)
    assert model_for_mode("fixer", "gpt-5-mini") == "gpt-5-mini"


def test_model_for_mode_sanitizes(monkeypatch):
    monkeypatch.setenv("VIBECODER_MODEL_MY_MODE", "gpt-4.1")
    assert model_for_mode("my-mode", "gpt-5-mini") == "gpt-4.1"


def _clear(monkeypatch):
    for k in (
        "VIBECODER_MODEL",
        "VIBECODER_REQUEST_TIMEOUT",
        "VIBECODER_CAPABILITIES",
        "VIBECODER_HISTORY_TURNS",
        "OPENAI_BASE_URL",
    ):
        monkeypatch.delenv(k, raising=False)


def test_settings_defaults(monkeypatch):
    _clear(monkeypatch)
    s = AgentSettings.from_env()
    assert s.model == DEFAULT_MODEL
    assert s.request_timeout == DEFAULT_REQUEST_TIMEOUT
    assert s.capability_file is None
    assert s.history_turns is None
    assert s.base_url is None


def test_settings_from_env(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("VIBECODER_MODEL", "gpt-4.1-mini")
    monkeypatch.setenv("VIBECODER_REQUEST_TIMEOUT", "30")
    monkeypatch.setenv("VIBECODER_HISTORY_TURNS", "20")
    monkeypatch.setenv("OPENAI_BASE_URL", "http://localhost:8000/v1")
    s = AgentSettings.from_env()
    assert s.model == "gpt-4.1-mini"
    assert s.request_timeout == 30.0
    assert s.history_turns == 20
    assert s.base_url == "http://localhost:8000/v1"


def test_settings_ignore_bad_numbers(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("VIBECODER_REQUEST_TIMEOUT", "soon")
    monkeypatch.setenv("VIBECODER_HISTORY_TURNS", "-3")
    s = AgentSettings.from_env()
    assert s.request_timeout == DEFAULT_REQUEST_TIMEOUT
    assert s.history_turns is None


def test_mode_model_env_names():
    from vibecoder_agent.core.config import mode_model_env

    assert mode_model_env("fixer") == "VIBECODER_MODEL_FIXER"
    assert mode_model_env("--my  mode--") == "VIBECODER_MODEL_MY_MODE"


def test_blank_mode_override_is_ignored(monkeypatch):
    monkeypatch.setenv("VIBECODER_MODEL_ENGINEER", "   ")
    assert model_for_mode("engineer", "gpt-5-mini") == "gpt-5-mini"
