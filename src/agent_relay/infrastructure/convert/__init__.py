"""Outbound conversion: canonical messages and tools to provider wire shapes."""

from .messages import convert_messages, flatten_to_string_content, message_from_dict
from .tools import (
    build_mcp_tool_name,
    convert_schema,
    convert_tool,
    convert_tools,
    map_tool_choice,
    normalize_mcp_tool_name,
    parse_mcp_tool_name,
    sanitize_mcp_name,
    tool_definition_from_mcp,
    tool_definition_from_openai,
)

__all__ = [
    "convert_messages",
    "flatten_to_string_content",
    "message_from_dict",
    "build_mcp_tool_name",
    "convert_schema",
    "convert_tool",
    "convert_tools",
    "map_tool_choice",
    "normalize_mcp_tool_name",
    "parse_mcp_tool_name",
    "sanitize_mcp_name",
    "tool_definition_from_mcp",
    "tool_definition_from_openai",
]
