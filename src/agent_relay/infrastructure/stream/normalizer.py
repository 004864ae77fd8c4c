"""Map provider stream parts to canonical chunks.

A stream part is anything with a ``type`` discriminator, either a dict or an
object with attributes (SDK event classes). Each part yields exactly one chunk
or ``None``. Whole ``tool-call`` parts are dropped: the
``tool-input-start``/``-delta``/``-end`` triplet already describes the call and
emitting both would duplicate it downstream.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from agent_relay.config.constants import STREAM_ERROR_KIND
from agent_relay.domain import (
    Chunk,
    ErrorChunk,
    GroundingChunk,
    GroundingSource,
    ReasoningChunk,
    TextChunk,
    ToolCallDeltaChunk,
    ToolCallEndChunk,
    ToolCallStartChunk,
    UsageChunk,
)

logger = logging.getLogger(__name__)

IGNORED_PART_TYPES = frozenset({
    "text-start",
    "text-end",
    "reasoning-start",
    "reasoning-end",
    "start-step",
    "finish-step",
    "start",
    "finish",
    "abort",
    "file",
    "tool-result",
    "tool-error",
    "tool-call",
    "raw",
})

_TOOL_INPUT_TYPES = ("tool-input-start", "tool-input-delta", "tool-input-end")

# Provider metadata keys, checked in every provider's metadata namespace.
_CACHE_READ_KEYS = ("promptCacheHitTokens", "cacheReadInputTokens")
_CACHE_WRITE_KEYS = ("promptCacheMissTokens", "cacheCreationInputTokens")


def _get(obj: Any, key: str, default: Any = None) -> Any:
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _count(value: Any) -> Optional[int]:
    """Non-negative int, or ``None`` when absent or not a number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value < 0:
        return None
    return int(value)


def _metadata_count(provider_metadata: Any, keys) -> Optional[int]:
    if not provider_metadata:
        return None
    namespaces = provider_metadata.values() if isinstance(provider_metadata, dict) else [provider_metadata]
    for namespace in namespaces:
        for key in keys:
            value = _count(_get(namespace, key))
            if value is not None:
                return value
    return None


def usage_chunk_from(usage: Any, provider_metadata: Any = None) -> UsageChunk:
    """Build a usage chunk from ``{inputTokens, outputTokens, details{...}}``.

    Cache figures reported in provider metadata (Groq/Fireworks prompt cache
    hit/miss, Anthropic cache read/creation) take precedence over the generic
    ``details``. Counts that are not reported stay ``None``.
    """
    details = _get(usage, "details")
    cache_read = _metadata_count(provider_metadata, _CACHE_READ_KEYS)
    if cache_read is None:
        cache_read = _count(_get(details, "cachedInputTokens"))
    return UsageChunk(
        input_tokens=_count(_get(usage, "inputTokens")) or 0,
        output_tokens=_count(_get(usage, "outputTokens")) or 0,
        cache_read_tokens=cache_read,
        cache_write_tokens=_metadata_count(provider_metadata, _CACHE_WRITE_KEYS),
        reasoning_tokens=_count(_get(details, "reasoningTokens")),
    )


def _error_message(error: Any) -> str:
    if isinstance(error, BaseException):
        return str(error)
    message = _get(error, "message")
    if isinstance(message, str) and message:
        return message
    return str(error)


def normalize_part(part: Any) -> Optional[Chunk]:
    """Translate one provider stream part; ``None`` for parts with no canonical counterpart."""
    part_type = _get(part, "type")

    if part_type in ("text", "text-delta"):
        return TextChunk(text=_get(part, "text") or "")
    if part_type in ("reasoning", "reasoning-delta"):
        return ReasoningChunk(text=_get(part, "text") or "")
    if part_type in _TOOL_INPUT_TYPES and _get(part, "id") is None:
        logger.warning("Ignoring %s part without a tool call id", part_type)
        return None
    if part_type == "tool-input-start":
        return ToolCallStartChunk(id=_get(part, "id"), name=_get(part, "toolName") or "")
    if part_type == "tool-input-delta":
        return ToolCallDeltaChunk(id=_get(part, "id"), delta=_get(part, "delta") or "")
    if part_type == "tool-input-end":
        return ToolCallEndChunk(id=_get(part, "id"))
    if part_type == "source":
        url = _get(part, "url")
        if not url:
            logger.debug("Dropping source part without url")
            return None
        return GroundingChunk(sources=[GroundingSource(title=_get(part, "title") or "Source", url=url)])
    if part_type == "error":
        return ErrorChunk(kind=STREAM_ERROR_KIND, message=_error_message(_get(part, "error")))
    if part_type == "usage":
        usage = _get(part, "usage", part)
        return usage_chunk_from(usage, _get(part, "providerMetadata"))
    if part_type in IGNORED_PART_TYPES:
        logger.debug("Dropping lifecycle part %r", part_type)
        return None

    logger.debug("Ignoring unknown stream part type %r", part_type)
    return None
