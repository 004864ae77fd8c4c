"""Named constants for values that appear in multiple places or need explanation.

Each constant has a comment saying what depends on it, so a maintainer can tell
whether a change is safe without grepping for side-effects.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Tool naming
# ---------------------------------------------------------------------------

# MCP tools are exposed to the model as ``mcp--<server>--<tool>``. Hyphens are
# accepted in function names by every provider we target and never appear in
# the sanitized server/tool parts as separators.
MCP_TOOL_PREFIX: str = "mcp"
MCP_TOOL_SEPARATOR: str = "--"

# Hyphens inside server/tool names are encoded as triple underscores so that
# models which rewrite "-" to "_" in function names still round-trip.
MCP_HYPHEN_ENCODING: str = "___"

# Tool name reported for a tool_result whose tool_use id is not in the
# conversation (orphaned result). Providers reject an empty tool name.
UNKNOWN_TOOL_NAME: str = "unknown_tool"

# Tool name used for tool-usage stats when a use_mcp_server ask lacks
# serverName/toolName.
USE_MCP_TOOL_NAME: str = "use_mcp_tool"

# Tool name for command asks and command_output says.
EXECUTE_COMMAND_TOOL_NAME: str = "execute_command"

# ---------------------------------------------------------------------------
# Message conversion
# ---------------------------------------------------------------------------

# Separator used when joining text parts (assistant text, flattened content,
# list-shaped tool output).
TEXT_PART_SEPARATOR: str = "\n"

# Placeholder for an empty tool output; several providers reject empty tool content.
EMPTY_TOOL_OUTPUT: str = "(empty)"

# Placeholder for an image inside tool output, which is converted to text.
TOOL_OUTPUT_IMAGE_PLACEHOLDER: str = "(image)"

# ---------------------------------------------------------------------------
# Conversation log
# ---------------------------------------------------------------------------

# Marker inserted between a command and its output when command sequences are
# consolidated for history display.
COMMAND_OUTPUT_STRING: str = "Output:"

# Error kind carried by error chunks produced from provider stream error parts.
STREAM_ERROR_KIND: str = "StreamError"

# ---------------------------------------------------------------------------
# Timeouts
# ---------------------------------------------------------------------------

# Default HTTP read timeout for one streamed chat-completions call. Streaming
# responses from large models can stay open for minutes; the per-provider
# value in ProviderConfig.timeout_s overrides this.
PROVIDER_STREAM_DEFAULT_TIMEOUT_S: float = 300.0
