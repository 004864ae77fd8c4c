"""Conversation log reducer: event log to timeline, usage and tool-usage snapshots."""

from .consolidate import consolidate_api_requests, consolidate_commands, summarize_history
from .timeline import ConversationLogReducer, reduce_log
from .usage import (
    UsageAccumulator,
    consolidate_token_usage,
    consolidate_tool_usage,
    has_token_usage_changed,
    has_tool_usage_changed,
)

__all__ = [
    "ConversationLogReducer",
    "UsageAccumulator",
    "consolidate_api_requests",
    "consolidate_commands",
    "consolidate_token_usage",
    "consolidate_tool_usage",
    "has_token_usage_changed",
    "has_tool_usage_changed",
    "reduce_log",
    "summarize_history",
]
