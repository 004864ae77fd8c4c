"""Configuration: schema, loading from env/file, and shared constants."""

from .schema import DEFAULT_CONFIG, ProviderConfig, ReducerConfig, RelayConfig
from .loader import load_config
from .constants import (
    COMMAND_OUTPUT_STRING,
    EMPTY_TOOL_OUTPUT,
    MCP_TOOL_PREFIX,
    MCP_TOOL_SEPARATOR,
    PROVIDER_STREAM_DEFAULT_TIMEOUT_S,
    TEXT_PART_SEPARATOR,
    UNKNOWN_TOOL_NAME,
)

__all__ = [
    "DEFAULT_CONFIG", "ProviderConfig", "ReducerConfig", "RelayConfig",
    "load_config",
    "COMMAND_OUTPUT_STRING", "EMPTY_TOOL_OUTPUT", "MCP_TOOL_PREFIX", "MCP_TOOL_SEPARATOR",
    "PROVIDER_STREAM_DEFAULT_TIMEOUT_S", "TEXT_PART_SEPARATOR", "UNKNOWN_TOOL_NAME",
]
