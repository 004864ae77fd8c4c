"""Token-usage and tool-usage folding over log events.

Api-request events (``api_req_started`` says) carry
``{tokensIn?, tokensOut?, cacheWrites?, cacheReads?, cost?}`` as JSON text.
Context-condense events carry ``{contextCondense: {newContextTokens, cost}}``
either as a structured payload or as JSON text. Figures that are missing,
negative or not numbers count as absent.
"""

from __future__ import annotations

import json
from dataclasses import replace
from typing import Any, Dict, Iterable, Optional

from agent_relay.config.constants import EXECUTE_COMMAND_TOOL_NAME, USE_MCP_TOOL_NAME
from agent_relay.config.schema import ReducerConfig
from agent_relay.domain import LogEvent, ToolUsage, ToolUsageStats, UsageSnapshot
from agent_relay.infrastructure.convert.tools import build_mcp_tool_name

API_REQUEST_SUBTYPE = "api_req_started"


def parse_json_object(text: Optional[str]) -> Dict[str, Any]:
    """Parse ``text`` as a JSON object; anything else gives ``{}``."""
    if not text:
        return {}
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return {}
    return data if isinstance(data, dict) else {}


def event_data(event: LogEvent) -> Dict[str, Any]:
    """Structured payload of ``event``, falling back to JSON in its text."""
    if event.payload:
        return event.payload
    return parse_json_object(event.text)


def _amount(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if value != value or value < 0:  # NaN
        return 0
    return value


def condense_data(event: LogEvent) -> Optional[Dict[str, Any]]:
    """The ``contextCondense`` object carried by ``event``, if any."""
    condense = (event.payload or {}).get("contextCondense")
    if not isinstance(condense, dict):
        condense = parse_json_object(event.text).get("contextCondense")
    return condense if isinstance(condense, dict) else None


class UsageAccumulator:
    """Running ``UsageSnapshot``. Feed events in log order."""

    def __init__(self) -> None:
        self._snapshot = UsageSnapshot()

    @property
    def snapshot(self) -> UsageSnapshot:
        return replace(self._snapshot)

    def add_api_request(self, data: Dict[str, Any]) -> None:
        s = self._snapshot
        tokens_in = int(_amount(data.get("tokensIn")))
        tokens_out = int(_amount(data.get("tokensOut")))
        s.total_tokens_in += tokens_in
        s.total_tokens_out += tokens_out
        s.total_cache_writes += int(_amount(data.get("cacheWrites")))
        s.total_cache_reads += int(_amount(data.get("cacheReads")))
        s.total_cost += _amount(data.get("cost"))
        if "tokensIn" in data or "tokensOut" in data:
            s.context_tokens = tokens_in + tokens_out

    def add_condense(self, data: Dict[str, Any]) -> None:
        s = self._snapshot
        s.total_cost += _amount(data.get("cost"))
        new_context = data.get("newContextTokens")
        if not isinstance(new_context, bool) and isinstance(new_context, (int, float)) and new_context >= 0:
            s.context_tokens = int(new_context)

    def add_event(self, event: LogEvent) -> None:
        """Fold one finalized event; events that carry no usage are ignored."""
        if event.kind != "say":
            return
        if event.subtype == API_REQUEST_SUBTYPE:
            self.add_api_request(event_data(event))
            return
        condense = condense_data(event)
        if condense is not None:
            self.add_condense(condense)


def consolidate_token_usage(events: Iterable[LogEvent]) -> UsageSnapshot:
    """Fold ``events`` into a ``UsageSnapshot`` (no deduplication; see the reducer for that)."""
    accumulator = UsageAccumulator()
    for event in events:
        accumulator.add_event(event)
    return accumulator.snapshot


def has_token_usage_changed(current: UsageSnapshot, previous: Optional[UsageSnapshot]) -> bool:
    if previous is None:
        return True
    return current != previous


def has_tool_usage_changed(current: ToolUsageStats, previous: Optional[ToolUsageStats]) -> bool:
    if previous is None:
        return True
    return current != previous


# ---------------------------------------------------------------------------
# Tool usage
# ---------------------------------------------------------------------------

def invoked_tool_name(event: LogEvent, config: ReducerConfig) -> Optional[str]:
    """Tool an ask event invokes, or ``None`` if it is not a tool invocation."""
    if event.kind != "ask" or event.subtype not in config.tool_invocation_subtypes:
        return None
    if event.subtype == "command":
        return EXECUTE_COMMAND_TOOL_NAME
    data = event_data(event)
    if event.subtype == "use_mcp_server":
        server, tool = data.get("serverName"), data.get("toolName")
        if server and tool:
            return build_mcp_tool_name(server, tool)
        return USE_MCP_TOOL_NAME
    tool = data.get("tool")
    return tool if isinstance(tool, str) and tool else None


def failed_tool_name(event: LogEvent, config: ReducerConfig) -> Optional[str]:
    """Tool a say event reports as failed, or ``None``."""
    if event.kind != "say":
        return None
    if event.subtype not in config.tool_failure_subtypes and event.subtype != "error":
        return None
    tool = event_data(event).get("tool")
    return tool if isinstance(tool, str) and tool else None


def consolidate_tool_usage(
    events: Iterable[LogEvent],
    config: Optional[ReducerConfig] = None,
    stats: Optional[ToolUsageStats] = None,
) -> ToolUsageStats:
    """Count attempts and failures per tool. ``stats`` is updated in place when given."""
    config = config or ReducerConfig()
    stats = {} if stats is None else stats
    for event in events:
        name = invoked_tool_name(event, config)
        if name is not None:
            stats.setdefault(name, ToolUsage()).attempts += 1
            continue
        name = failed_tool_name(event, config)
        if name is not None:
            stats.setdefault(name, ToolUsage()).failures += 1
    return stats
