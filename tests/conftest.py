"""Pytest fixtures and helpers for agent-relay tests."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from agent_relay.domain import LogEvent

# Repo root (parent of tests/)
REPO_ROOT = Path(__file__).resolve().parent.parent


def say(ts: int, subtype: str, text: str = "", partial: bool = False, **payload: Any) -> LogEvent:
    """Build a ``say`` log event; keyword arguments become the structured payload."""
    return LogEvent(id=ts, kind="say", subtype=subtype, text=text, partial=partial, payload=payload or None)


def ask(ts: int, subtype: str, text: str = "", partial: bool = False) -> LogEvent:
    return LogEvent(id=ts, kind="ask", subtype=subtype, text=text, partial=partial)


def api_req(ts: int, **data: Any) -> LogEvent:
    """``api_req_started`` say carrying ``data`` as JSON text, as the host writes it."""
    return say(ts, "api_req_started", json.dumps(data))


def condense(ts: int, new_context_tokens: int, cost: float = 0.0) -> LogEvent:
    return say(ts, "condense_context", contextCondense={"newContextTokens": new_context_tokens, "cost": cost})


class FakeProviderClient:
    """Provider client double: replays a fixed list of stream parts, or raises."""

    def __init__(self, parts: List[Any], error: Optional[BaseException] = None) -> None:
        self.parts = parts
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    async def create_message(self, system_prompt, messages, *, tools=None, tool_choice=None):
        self.calls.append({
            "system_prompt": system_prompt,
            "messages": messages,
            "tools": tools,
            "tool_choice": tool_choice,
        })
        try:
            for part in self.parts:
                yield part
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


@pytest.fixture(autouse=True)
def _reset_config_cache():
    """Clear the load_config LRU cache and reset _env before (and after) every test.

    This ensures each test gets a fresh config load, so monkeypatching
    RELAY_CONFIG_PATH works without tests bleeding into each other.
    """
    from agent_relay.config import loader as config_loader
    config_loader.load_config.cache_clear()
    config_loader._env = None
    yield
    config_loader.load_config.cache_clear()
    config_loader._env = None
