"""Tests for config loading: defaults, RELAY_CONFIG_PATH, single-provider shorthand."""
from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from agent_relay.config import load_config
from agent_relay.config.schema import DEFAULT_CONFIG, ProviderConfig, RelayConfig


def test_default_config_without_env(monkeypatch):
    monkeypatch.delenv("RELAY_CONFIG_PATH", raising=False)
    config = load_config()
    assert config == DEFAULT_CONFIG
    assert config.default_provider == "local"
    assert config.unknown_tool_name == "unknown_tool"
    assert "api_req_started" in config.reducer.hidden_say_subtypes


def test_missing_file_falls_back_to_default(monkeypatch, tmp_path):
    monkeypatch.setenv("RELAY_CONFIG_PATH", str(tmp_path / "nope.json"))
    assert load_config() == DEFAULT_CONFIG


def test_config_file_is_loaded(monkeypatch, tmp_path):
    path = tmp_path / "relay.json"
    path.write_text(json.dumps({
        "providers": {
            "groq": {"label": "Groq", "base_url": "https://api.groq.com/openai/v1", "model": "llama", "api_key": "k"},
        },
        "default_provider": "groq",
        "reducer": {"tool_failure_subtypes": ["tool_error", "diff_error"]},
    }))
    monkeypatch.setenv("RELAY_CONFIG_PATH", str(path))
    config = load_config()
    assert config.providers["groq"].label == "Groq"
    assert config.providers["groq"].tool_format == "chat"
    assert config.reducer.tool_failure_subtypes == ["tool_error", "diff_error"]
    assert load_config() is config


def test_single_provider_shorthand(monkeypatch, tmp_path):
    path = tmp_path / "relay.json"
    path.write_text(json.dumps({"provider": {"label": "Local", "base_url": "http://localhost:8000/v1", "model": "m"}}))
    monkeypatch.setenv("RELAY_CONFIG_PATH", str(path))
    assert load_config().providers["local"].base_url == "http://localhost:8000/v1"


def test_unknown_default_provider_is_rejected():
    with pytest.raises(ValidationError, match="default_provider"):
        RelayConfig(
            providers={"a": ProviderConfig(label="A", base_url="http://a", model="m")},
            default_provider="b",
        )


def test_mcp_naming_is_not_configurable(monkeypatch, tmp_path):
    path = tmp_path / "relay.json"
    path.write_text(json.dumps({
        "provider": {"label": "Local", "base_url": "http://localhost:8000/v1", "model": "m"},
        "mcp_tool_prefix": "tool",
        "mcp_tool_separator": "::",
    }))
    monkeypatch.setenv("RELAY_CONFIG_PATH", str(path))
    config = load_config()
    assert "mcp_tool_prefix" not in RelayConfig.model_fields
    assert "mcp_tool_separator" not in RelayConfig.model_fields
    assert not hasattr(config, "mcp_tool_prefix")
