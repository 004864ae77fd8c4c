"""Convert canonical conversation messages to provider wire messages.

The wire layout is the provider-neutral "model message" shape accepted by the
provider clients in this package::

    {"role": "user", "content": [{"type": "text", "text": ...},
                                 {"type": "image", "image": <uri>, "mimeType": ...}]}
    {"role": "assistant", "content": [{"type": "reasoning", "text": ...},
                                      {"type": "text", "text": ...},
                                      {"type": "tool-call", "toolCallId", "toolName", "input"}]}
    {"role": "tool", "content": [{"type": "tool-result", "toolCallId", "toolName",
                                  "output": {"type": "text", "value": ...}}]}

Tool results always travel in their own ``tool`` message, ahead of any
text/image parts of the user turn that carried them.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from agent_relay.config.constants import (
    EMPTY_TOOL_OUTPUT,
    TEXT_PART_SEPARATOR,
    TOOL_OUTPUT_IMAGE_PLACEHOLDER,
    UNKNOWN_TOOL_NAME,
)
from agent_relay.domain import (
    ConversionError,
    ImageBlock,
    Message,
    ReasoningBlock,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)

logger = logging.getLogger(__name__)

WireMessage = Dict[str, Any]


def _image_part(block: ImageBlock) -> Dict[str, Any]:
    if block.data:
        if not block.mime_type:
            raise ConversionError("Inline image data requires a mime type")
        return {
            "type": "image",
            "image": f"data:{block.mime_type};base64,{block.data}",
            "mimeType": block.mime_type,
        }
    if block.url:
        return {"type": "image", "image": block.url}
    raise ConversionError("Image block has neither inline data nor a url")


def _tool_output_text(output: Any) -> str:
    """Render tool output as text; list output keeps text and marks images."""
    if isinstance(output, str):
        text = output
    elif isinstance(output, list):
        pieces = []
        for part in output:
            if isinstance(part, TextBlock):
                pieces.append(part.text)
            elif isinstance(part, ImageBlock):
                pieces.append(TOOL_OUTPUT_IMAGE_PLACEHOLDER)
            else:
                pieces.append("")
        text = TEXT_PART_SEPARATOR.join(pieces)
    elif output is None:
        text = ""
    else:
        raise ConversionError(f"Unsupported tool output type: {type(output).__name__}")
    return text or EMPTY_TOOL_OUTPUT


def _convert_user(
    message: Message,
    tool_names: Dict[str, str],
    unknown_tool_name: str,
) -> List[WireMessage]:
    parts: List[Dict[str, Any]] = []
    tool_results: List[Dict[str, Any]] = []

    for block in message.content:
        if isinstance(block, TextBlock):
            parts.append({"type": "text", "text": block.text})
        elif isinstance(block, ImageBlock):
            parts.append(_image_part(block))
        elif isinstance(block, ToolResultBlock):
            tool_name = tool_names.get(block.tool_use_id)
            if tool_name is None:
                logger.debug("Orphaned tool_result %s; using %r", block.tool_use_id, unknown_tool_name)
                tool_name = unknown_tool_name
            tool_results.append({
                "type": "tool-result",
                "toolCallId": block.tool_use_id,
                "toolName": tool_name,
                "output": {"type": "text", "value": _tool_output_text(block.output)},
            })
        elif isinstance(block, ReasoningBlock):
            continue
        elif isinstance(block, ToolUseBlock):
            raise ConversionError(f"tool_use block {block.id!r} in a {message.role} message")
        else:
            raise ConversionError(f"Unsupported content block: {type(block).__name__}")

    out: List[WireMessage] = []
    if tool_results:
        out.append({"role": "tool", "content": tool_results})
    if parts:
        out.append({"role": "user", "content": parts})
    return out


def _convert_assistant(message: Message, tool_names: Dict[str, str]) -> WireMessage:
    text_parts: List[str] = []
    reasoning_parts: List[str] = []
    tool_calls: List[Dict[str, Any]] = []
    # Message-level reasoning wins over reasoning blocks.
    reasoning_content = message.reasoning_content or None

    for block in message.content:
        if isinstance(block, TextBlock):
            text_parts.append(block.text)
        elif isinstance(block, ToolUseBlock):
            tool_names[block.id] = block.name
            tool_calls.append({
                "type": "tool-call",
                "toolCallId": block.id,
                "toolName": block.name,
                "input": block.input if block.input is not None else {},
            })
        elif isinstance(block, ReasoningBlock):
            if not reasoning_content and block.text:
                reasoning_parts.append(block.text)
        elif isinstance(block, ToolResultBlock):
            raise ConversionError(f"tool_result for {block.tool_use_id!r} in an assistant message")
        elif isinstance(block, ImageBlock):
            logger.debug("Dropping image block from assistant message")
        else:
            raise ConversionError(f"Unsupported content block: {type(block).__name__}")

    content: List[Dict[str, Any]] = []
    if reasoning_content:
        content.append({"type": "reasoning", "text": reasoning_content})
    elif reasoning_parts:
        content.append({"type": "reasoning", "text": "".join(reasoning_parts)})
    if text_parts:
        content.append({"type": "text", "text": TEXT_PART_SEPARATOR.join(text_parts)})
    content.extend(tool_calls)

    return {"role": "assistant", "content": content or [{"type": "text", "text": ""}]}


def convert_messages(
    messages: List[Message],
    *,
    unknown_tool_name: str = UNKNOWN_TOOL_NAME,
    transform: Optional[Callable[[List[WireMessage]], List[WireMessage]]] = None,
) -> List[WireMessage]:
    """Convert canonical ``messages`` to wire messages, in order.

    A tool result's ``toolName`` comes from the matching ``tool_use`` earlier in
    the conversation; orphaned results get ``unknown_tool_name``.

    Args:
        messages: Ordered conversation.
        unknown_tool_name: Sentinel for results with no matching tool_use.
        transform: Optional post-processing pass (e.g. ``flatten_to_string_content``).

    Raises:
        ConversionError: For unknown roles or blocks that cannot appear in their role.
    """
    tool_names: Dict[str, str] = {}
    wire: List[WireMessage] = []

    for message in messages:
        if message.role in ("user", "tool"):
            wire.extend(_convert_user(message, tool_names, unknown_tool_name))
        elif message.role == "assistant":
            wire.append(_convert_assistant(message, tool_names))
        else:
            raise ConversionError(f"Unknown message role {message.role!r}")

    if transform is not None:
        return transform(wire)
    return wire


def _flatten_text_parts(content: List[Dict[str, Any]]) -> Optional[str]:
    """Joined text when every part is text; ``None`` otherwise."""
    if not content or any(part.get("type") != "text" for part in content):
        return None
    return TEXT_PART_SEPARATOR.join(part.get("text") or "" for part in content)


def flatten_to_string_content(
    messages: List[WireMessage],
    *,
    flatten_user: bool = True,
    flatten_assistant: bool = True,
) -> List[WireMessage]:
    """Collapse all-text content arrays to a single string.

    For providers that only accept string content. Tool messages and any message
    carrying images, reasoning or tool calls are returned unchanged.
    """
    flattened: List[WireMessage] = []
    for message in messages:
        content = message.get("content")
        role = message.get("role")
        enabled = (role == "user" and flatten_user) or (role == "assistant" and flatten_assistant)
        if enabled and isinstance(content, list):
            text = _flatten_text_parts(content)
            if text is not None:
                flattened.append({**message, "content": text})
                continue
        flattened.append(message)
    return flattened


# ---------------------------------------------------------------------------
# Ingestion of Anthropic-style message dicts
# ---------------------------------------------------------------------------

def _require(block: Dict[str, Any], key: str) -> Any:
    if key not in block:
        raise ConversionError(f"{block.get('type')!r} block is missing {key!r}")
    return block[key]


def _block_from_dict(block: Dict[str, Any]):
    if not isinstance(block, dict):
        raise ConversionError(f"Content block must be an object, got {type(block).__name__}")
    block_type = block.get("type")
    if block_type == "text":
        return TextBlock(text=block.get("text") or "")
    if block_type == "image":
        source = _require(block, "source") or {}
        if source.get("type") == "base64":
            return ImageBlock(mime_type=source.get("media_type"), data=source.get("data"))
        if source.get("type") == "url":
            return ImageBlock(mime_type=source.get("media_type"), url=source.get("url"))
        raise ConversionError(f"Unsupported image source type {source.get('type')!r}")
    if block_type == "tool_use":
        return ToolUseBlock(id=_require(block, "id"), name=_require(block, "name"), input=block.get("input"))
    if block_type == "tool_result":
        content = block.get("content", "")
        if isinstance(content, list):
            content = [_block_from_dict(part) for part in content]
        return ToolResultBlock(
            tool_use_id=_require(block, "tool_use_id"),
            output=content,
            is_error=bool(block.get("is_error", False)),
        )
    if block_type == "reasoning":
        return ReasoningBlock(text=block.get("text") or "")
    if block_type == "thinking":
        return ReasoningBlock(text=block.get("thinking") or "")
    raise ConversionError(f"Unknown content block type {block_type!r}")


def message_from_dict(data: Dict[str, Any]) -> Message:
    """Parse an Anthropic-style ``{role, content}`` dict (string or block list) into a ``Message``."""
    role = data.get("role")
    if role not in ("user", "assistant", "tool"):
        raise ConversionError(f"Unknown message role {role!r}")
    content = data.get("content", [])
    if isinstance(content, str):
        blocks = [TextBlock(text=content)]
    elif isinstance(content, list):
        blocks = [_block_from_dict(block) for block in content]
    else:
        raise ConversionError(f"Message content must be a string or a list, got {type(content).__name__}")
    reasoning = data.get("reasoning_content")
    return Message(
        role=role,
        content=blocks,
        reasoning_content=reasoning if isinstance(reasoning, str) and reasoning else None,
    )
