"""Tests for environment settings."""
import pytest

from api.config import Settings, load_settings
from api.errors import ConfigError
from api.main import create_app

BASE_ENV = {"MCP_ENDPOINT": "http://tools/mcp", "OPENAI_API_KEY": "sk-test"}


def test_missing_tool_endpoint_fails_fast():
    with pytest.raises(ConfigError, match="MCP_ENDPOINT"):
        load_settings({"OPENAI_API_KEY": "sk-test"})


def test_blank_tool_endpoint_fails_fast():
    with pytest.raises(ConfigError):
        load_settings({**BASE_ENV, "MCP_ENDPOINT": "   "})


def test_missing_model_api_key_fails_fast():
    with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
        load_settings({"MCP_ENDPOINT": "http://tools/mcp"})


def test_app_without_model_credentials_fails_before_listening(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ConfigError, match="model client"):
        create_app(Settings(mcp_endpoint="http://tools/mcp"))


def test_defaults():
    settings = load_settings(BASE_ENV)
    assert settings.mcp_endpoint == "http://tools/mcp"
    assert settings.openai_api_key == "sk-test"
    assert settings.mcp_auth_token is None
    assert settings.shutdown_timeout == 5.0
    assert settings.turn_timeout == 60.0
    assert settings.port == 8080
    assert settings.cors_origins == []


def test_overrides():
    settings = load_settings({
        **BASE_ENV,
        "MCP_AUTH_TOKEN": "secret",
        "MCP_AUTH_HEADER": "X-Tool-Token",
        "AGENT_MODEL": "gpt-4o",
        "TURN_TIMEOUT_S": "12.5",
        "PORT": "9000",
        "CORS_ORIGINS": "http://a, http://b",
    })
    assert settings.mcp_auth_token == "secret"
    assert settings.mcp_auth_header == "X-Tool-Token"
    assert settings.model == "gpt-4o"
    assert settings.turn_timeout == 12.5
    assert settings.port == 9000
    assert settings.cors_origins == ["http://a", "http://b"]


@pytest.mark.parametrize("value", ["soon", "0", "-3"])
def test_bad_timeouts_are_rejected(value):
    with pytest.raises(ConfigError, match="SHUTDOWN_TIMEOUT_S"):
        load_settings({**BASE_ENV, "SHUTDOWN_TIMEOUT_S": value})
