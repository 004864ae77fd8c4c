"""Domain models: messages, tool definitions, stream chunks, tool calls, log events. Pure data, no I/O."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from agent_relay.config.constants import MCP_TOOL_PREFIX, MCP_TOOL_SEPARATOR


# ---------------------------------------------------------------------------
# Canonical conversation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextBlock:
    text: str


@dataclass(frozen=True)
class ImageBlock:
    """An image either inlined as base64 ``data`` or referenced by ``url``."""
    mime_type: Optional[str] = None
    data: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class ToolUseBlock:
    id: str
    name: str
    input: Any = None


@dataclass(frozen=True)
class ToolResultBlock:
    """Output of a tool call, addressed to the ``tool_use_id`` that requested it.

    ``output`` is either plain text or a list of text/image blocks.
    """
    tool_use_id: str
    output: Union[str, List["ContentBlock"]] = ""
    is_error: bool = False


@dataclass(frozen=True)
class ReasoningBlock:
    text: str


ContentBlock = Union[TextBlock, ImageBlock, ToolUseBlock, ToolResultBlock, ReasoningBlock]


@dataclass
class Message:
    """One conversation turn: ``user``, ``assistant`` or ``tool``."""
    role: str
    content: List[ContentBlock] = field(default_factory=list)
    reasoning_content: Optional[str] = None  # Provider-level reasoning kept for round-tripping


def is_mcp_tool_name(name: str) -> bool:
    """True for ``mcp--server--tool`` names and their ``mcp__server__tool`` mangled form."""
    return name.startswith(MCP_TOOL_PREFIX + MCP_TOOL_SEPARATOR) or name.startswith(MCP_TOOL_PREFIX + "__")


@dataclass(frozen=True)
class ToolDefinition:
    """A tool offered to the model. ``is_mcp`` is derived from the name once, at construction."""
    name: str
    description: str = ""
    schema: Dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})
    is_mcp: bool = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "is_mcp", is_mcp_tool_name(self.name))


# ---------------------------------------------------------------------------
# Canonical stream chunks
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextChunk:
    text: str
    type: str = field(default="text", init=False)


@dataclass(frozen=True)
class ReasoningChunk:
    text: str
    type: str = field(default="reasoning", init=False)


@dataclass(frozen=True)
class ToolCallStartChunk:
    id: str
    name: str
    type: str = field(default="tool_call_start", init=False)


@dataclass(frozen=True)
class ToolCallDeltaChunk:
    id: str
    delta: str
    type: str = field(default="tool_call_delta", init=False)


@dataclass(frozen=True)
class ToolCallEndChunk:
    id: str
    type: str = field(default="tool_call_end", init=False)


@dataclass(frozen=True)
class UsageChunk:
    """Token usage for one response. ``None`` means "not reported", not zero."""
    input_tokens: int
    output_tokens: int
    cache_read_tokens: Optional[int] = None
    cache_write_tokens: Optional[int] = None
    reasoning_tokens: Optional[int] = None
    type: str = field(default="usage", init=False)


@dataclass(frozen=True)
class GroundingSource:
    title: str
    url: str
    snippet: Optional[str] = None


@dataclass(frozen=True)
class GroundingChunk:
    sources: List[GroundingSource]
    type: str = field(default="grounding", init=False)


@dataclass(frozen=True)
class ErrorChunk:
    kind: str
    message: str
    type: str = field(default="error", init=False)


Chunk = Union[
    TextChunk,
    ReasoningChunk,
    ToolCallStartChunk,
    ToolCallDeltaChunk,
    ToolCallEndChunk,
    UsageChunk,
    GroundingChunk,
    ErrorChunk,
]

TOOL_CALL_CHUNK_TYPES = (ToolCallStartChunk, ToolCallDeltaChunk, ToolCallEndChunk)


# ---------------------------------------------------------------------------
# Assembled tool calls
# ---------------------------------------------------------------------------

class ToolCallStatus(str, Enum):
    NOT_STARTED = "not_started"
    ACCUMULATING = "accumulating"
    COMPLETE = "complete"
    MALFORMED = "malformed"
    DISCARDED = "discarded"


@dataclass
class ToolCallRequest:
    """A complete tool call whose arguments parsed as JSON."""
    call_id: str        # Opaque ID, used to correlate with tool results in the message history
    tool_name: str
    arguments: Any


@dataclass
class MalformedToolCall:
    """A tool call whose accumulated arguments did not parse; reported back to the model."""
    call_id: str
    tool_name: str
    raw_arguments: str
    error: str


ToolCallResult = Union[ToolCallRequest, MalformedToolCall]


@dataclass
class LLMResponse:
    """Everything one provider response produced, drained from the chunk stream.

    ``usage`` is the last usage chunk seen; providers report cumulative usage at
    the end of the stream.
    """
    content: Optional[str]
    tool_calls: List[ToolCallRequest] = field(default_factory=list)
    malformed_tool_calls: List[MalformedToolCall] = field(default_factory=list)
    reasoning: Optional[str] = None
    usage: Optional[UsageChunk] = None
    sources: List[GroundingSource] = field(default_factory=list)
    errors: List[ErrorChunk] = field(default_factory=list)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls or self.malformed_tool_calls)


# ---------------------------------------------------------------------------
# Provider errors
# ---------------------------------------------------------------------------

@dataclass
class ProviderErrorInfo:
    """Typed classification of an arbitrary provider error."""
    provider_label: str
    message: str
    status: Optional[int] = None
    cause: Any = None


# ---------------------------------------------------------------------------
# Conversation log
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LogEvent:
    """One delivery of an entry in the task's append-only event log.

    ``id`` is the message timestamp; deliveries sharing an id describe the same
    logical message. ``kind`` is ``say`` (agent output) or ``ask`` (agent waits
    for the user). ``payload`` carries structured data that is not in ``text``
    (e.g. ``{"contextCondense": {...}}``).
    """
    id: int
    kind: str
    subtype: str
    text: str = ""
    partial: bool = False
    payload: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogEvent":
        """Build from either the canonical shape or the host's ``{ts, type, say|ask}`` shape."""
        kind = data.get("kind") or data.get("type") or "say"
        subtype = data.get("subtype") or data.get(kind) or ""
        payload = data.get("payload")
        if payload is None and isinstance(data.get("contextCondense"), dict):
            payload = {"contextCondense": data["contextCondense"]}
        return cls(
            id=int(data["id"] if "id" in data else data["ts"]),
            kind=kind,
            subtype=subtype,
            text=data.get("text") or "",
            partial=bool(data.get("partial", False)),
            payload=payload,
        )


@dataclass
class UsageSnapshot:
    total_tokens_in: int = 0
    total_tokens_out: int = 0
    total_cost: float = 0.0
    total_cache_reads: int = 0
    total_cache_writes: int = 0
    context_tokens: int = 0


@dataclass
class ToolUsage:
    attempts: int = 0
    failures: int = 0


ToolUsageStats = Dict[str, ToolUsage]


@dataclass
class TimelineEntry:
    """One visible row of the display timeline."""
    id: int
    role: str               # assistant | tool | thinking
    content: str
    kind: str
    subtype: str
    partial: bool = False
    tool_name: Optional[str] = None
    tool_display_name: Optional[str] = None
    tool_data: Optional[Dict[str, Any]] = None
    suggestions: Optional[List[Dict[str, Any]]] = None
