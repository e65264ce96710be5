import pytest
from pydantic import ValidationError

from agentloop.config import AgentConfiguration, AgentLoopSettings
from agentloop.llm.retry import ExponentialBackoffPolicy


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("AGENTLOOP_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("AGENTLOOP_OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("AGENTLOOP_RETRY_MAX_RETRIES", "2")

    loaded = AgentLoopSettings(_env_file=None)

    assert loaded.log_level == "DEBUG"
    assert loaded.openai_api_key.get_secret_value() == "sk-test"
    assert "sk-test" not in repr(loaded)
    assert ExponentialBackoffPolicy.from_settings(loaded).max_retries == 2


def test_configuration_defaults_and_bounds():
    config = AgentConfiguration()

    assert config.max_steps == 10
    assert config.max_duplicate_tool_calls == 2
    assert config.max_tool_calls_per_tool == 5
    assert config.max_decode_retries == 2
    with pytest.raises(ValidationError):
        AgentConfiguration(max_steps=0)
    with pytest.raises(ValidationError):
        config.max_steps = 3
