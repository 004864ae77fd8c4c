"""Stream one provider turn.

Flow: convert messages and tools → ``ProviderClient.create_message`` →
normalize each part → feed tool-call chunks to a fresh assembler → yield every
chunk plus every assembled tool call as soon as it completes.

Dependencies are injected (the client is a port); this module never imports
from ``interfaces``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, List, Optional, Union

from agent_relay.application.ports import ProviderClient
from agent_relay.config.constants import UNKNOWN_TOOL_NAME
from agent_relay.domain import (
    TOOL_CALL_CHUNK_TYPES,
    Chunk,
    ErrorChunk,
    GroundingChunk,
    LLMResponse,
    MalformedToolCall,
    Message,
    ReasoningChunk,
    RelayError,
    TextChunk,
    ToolCallRequest,
    ToolCallResult,
    ToolDefinition,
    UsageChunk,
)
from agent_relay.infrastructure.convert import (
    convert_messages,
    convert_tools,
    flatten_to_string_content,
    map_tool_choice,
)
from agent_relay.infrastructure.errors import to_provider_error
from agent_relay.infrastructure.stream import ToolCallAssembler, normalize_part

logger = logging.getLogger(__name__)

TurnItem = Union[Chunk, ToolCallResult]


async def _close(parts: Any) -> None:
    if parts is None:
        return
    aclose = getattr(parts, "aclose", None)
    if aclose is not None:
        await aclose()


_END = object()
_CANCELLED = object()


async def _pull(iterator: Any) -> Any:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _END


async def _next_part(iterator: Any, cancel_event: Optional[asyncio.Event]) -> Any:
    """Next stream part, ``_END`` when the stream is exhausted, or ``_CANCELLED``.

    A pending read is abandoned as soon as ``cancel_event`` is set, so a stalled
    provider stream still honours the abort.
    """
    if cancel_event is None:
        return await _pull(iterator)
    if cancel_event.is_set():
        return _CANCELLED
    read = asyncio.ensure_future(_pull(iterator))
    abort = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({read, abort}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (read, abort):
            if not task.done():
                task.cancel()
        # The read must settle before the stream can be closed.
        await asyncio.gather(read, abort, return_exceptions=True)
    if read.cancelled():
        return _CANCELLED
    return read.result()


async def stream_turn(
    client: ProviderClient,
    system_prompt: str,
    messages: List[Message],
    *,
    tools: Optional[List[ToolDefinition]] = None,
    tool_choice: Any = None,
    provider_label: str = "Provider",
    tool_format: str = "chat",
    flatten: bool = False,
    unknown_tool_name: str = UNKNOWN_TOOL_NAME,
    cancel_event: Optional[asyncio.Event] = None,
) -> AsyncIterator[TurnItem]:
    """Yield the canonical chunks and assembled tool calls of one provider response.

    Args:
        client: Provider client (port).
        system_prompt: Sent ahead of ``messages``.
        messages: Canonical conversation; converted before the call.
        tools: Tool definitions offered to the model.
        tool_choice: OpenAI-style tool choice (``"auto"``, ``"required"``, named function).
        provider_label: Prefix of classified error messages, e.g. ``"Groq"``.
        tool_format: ``chat`` or ``responses`` tool schema layout.
        flatten: Collapse all-text message content to strings.
        unknown_tool_name: Tool name used for orphaned tool results.
        cancel_event: When set, open tool calls are discarded and the stream stops,
            including while a read from the provider is still pending.

    Raises:
        ConversionError: If ``messages`` or ``tools`` cannot be converted.
        ProviderError: If the provider call fails. ``status`` carries the HTTP status when known.
    """
    wire_messages = convert_messages(
        messages,
        unknown_tool_name=unknown_tool_name,
        transform=flatten_to_string_content if flatten else None,
    )
    wire_tools = convert_tools(tools, tool_format) if tools else None
    assembler = ToolCallAssembler()

    logger.debug(
        "Turn start provider=%s messages=%d tools=%d",
        provider_label, len(wire_messages), len(wire_tools or []),
    )
    parts = None
    try:
        parts = client.create_message(
            system_prompt,
            wire_messages,
            tools=wire_tools,
            tool_choice=map_tool_choice(tool_choice),
        )
        iterator = parts.__aiter__()
        while True:
            part = await _next_part(iterator, cancel_event)
            if part is _END:
                break
            if part is _CANCELLED:
                assembler.cancel()
                logger.info("Turn cancelled by caller (provider=%s)", provider_label)
                return
            chunk = normalize_part(part)
            if chunk is None:
                continue
            yield chunk
            if isinstance(chunk, TOOL_CALL_CHUNK_TYPES):
                result = assembler.feed(chunk)
                if result is not None:
                    yield result
    except asyncio.CancelledError:
        assembler.cancel()
        raise
    except RelayError:
        raise
    except Exception as exc:
        error = to_provider_error(exc, provider_label)
        logger.error("%s", error)
        raise error from exc
    finally:
        await _close(parts)

    if cancel_event is not None and cancel_event.is_set():
        assembler.cancel()
        return
    for result in assembler.flush():
        yield result


async def collect_turn(
    client: ProviderClient,
    system_prompt: str,
    messages: List[Message],
    **kwargs: Any,
) -> LLMResponse:
    """Drain ``stream_turn`` into an ``LLMResponse``. Accepts the same keyword arguments."""
    text: List[str] = []
    reasoning: List[str] = []
    response = LLMResponse(content=None)

    async for item in stream_turn(client, system_prompt, messages, **kwargs):
        if isinstance(item, TextChunk):
            text.append(item.text)
        elif isinstance(item, ReasoningChunk):
            reasoning.append(item.text)
        elif isinstance(item, ToolCallRequest):
            response.tool_calls.append(item)
        elif isinstance(item, MalformedToolCall):
            response.malformed_tool_calls.append(item)
        elif isinstance(item, UsageChunk):
            response.usage = item
        elif isinstance(item, GroundingChunk):
            response.sources.extend(item.sources)
        elif isinstance(item, ErrorChunk):
            response.errors.append(item)

    response.content = "".join(text) or None
    response.reasoning = "".join(reasoning) or None
    return response
