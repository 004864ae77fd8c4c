"""Domain layer: entities and value objects. No I/O."""

from .models import (
    TOOL_CALL_CHUNK_TYPES,
    Chunk,
    ContentBlock,
    ErrorChunk,
    GroundingChunk,
    GroundingSource,
    ImageBlock,
    LLMResponse,
    LogEvent,
    MalformedToolCall,
    Message,
    ProviderErrorInfo,
    ReasoningBlock,
    ReasoningChunk,
    TextBlock,
    TextChunk,
    TimelineEntry,
    ToolCallDeltaChunk,
    ToolCallEndChunk,
    ToolCallRequest,
    ToolCallResult,
    ToolCallStartChunk,
    ToolCallStatus,
    ToolDefinition,
    ToolResultBlock,
    ToolUsage,
    ToolUsageStats,
    ToolUseBlock,
    UsageChunk,
    UsageSnapshot,
    is_mcp_tool_name,
)
from .errors import (
    ConversionError,
    ProviderError,
    RelayError,
    StreamProtocolViolation,
    ToolCallParseError,
)

__all__ = [
    "TOOL_CALL_CHUNK_TYPES",
    "Chunk",
    "ContentBlock",
    "ErrorChunk",
    "GroundingChunk",
    "GroundingSource",
    "ImageBlock",
    "LLMResponse",
    "LogEvent",
    "MalformedToolCall",
    "Message",
    "ProviderErrorInfo",
    "ReasoningBlock",
    "ReasoningChunk",
    "TextBlock",
    "TextChunk",
    "TimelineEntry",
    "ToolCallDeltaChunk",
    "ToolCallEndChunk",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolCallStartChunk",
    "ToolCallStatus",
    "ToolDefinition",
    "ToolResultBlock",
    "ToolUsage",
    "ToolUsageStats",
    "ToolUseBlock",
    "UsageChunk",
    "UsageSnapshot",
    "is_mcp_tool_name",
    "ConversionError",
    "ProviderError",
    "RelayError",
    "StreamProtocolViolation",
    "ToolCallParseError",
]
