"""Tests for provider stream part → canonical chunk normalization."""
from __future__ import annotations

from types import SimpleNamespace

import pytest

from agent_relay.domain import (
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
from agent_relay.infrastructure.stream import IGNORED_PART_TYPES, normalize_part, usage_chunk_from


@pytest.mark.parametrize("part_type", ["text", "text-delta"])
def test_text_parts(part_type):
    assert normalize_part({"type": part_type, "text": "Hello"}) == TextChunk(text="Hello")


@pytest.mark.parametrize("part_type", ["reasoning", "reasoning-delta"])
def test_reasoning_parts(part_type):
    assert normalize_part({"type": part_type, "text": "hmm"}) == ReasoningChunk(text="hmm")


def test_tool_input_triplet_keeps_call_id():
    assert normalize_part({"type": "tool-input-start", "id": "call_9", "toolName": "ls"}) == ToolCallStartChunk(
        id="call_9", name="ls"
    )
    assert normalize_part({"type": "tool-input-delta", "id": "call_9", "delta": '{"a"'}) == ToolCallDeltaChunk(
        id="call_9", delta='{"a"'
    )
    assert normalize_part({"type": "tool-input-end", "id": "call_9"}) == ToolCallEndChunk(id="call_9")


def test_whole_tool_call_part_is_dropped():
    assert normalize_part({"type": "tool-call", "toolCallId": "c", "toolName": "ls", "input": {}}) is None


def test_source_becomes_grounding():
    chunk = normalize_part({"type": "source", "url": "https://docs.example.com", "title": "Docs"})
    assert chunk == GroundingChunk(sources=[GroundingSource(title="Docs", url="https://docs.example.com")])


def test_source_title_defaults_and_missing_url_is_dropped():
    chunk = normalize_part({"type": "source", "url": "https://x.test"})
    assert chunk.sources[0].title == "Source"
    assert normalize_part({"type": "source", "title": "No link"}) is None


def test_error_part_becomes_stream_error():
    assert normalize_part({"type": "error", "error": {"message": "overloaded"}}) == ErrorChunk(
        kind="StreamError", message="overloaded"
    )
    assert normalize_part({"type": "error", "error": RuntimeError("boom")}).message == "boom"
    assert normalize_part({"type": "error", "error": "plain"}).message == "plain"


@pytest.mark.parametrize("part_type", sorted(IGNORED_PART_TYPES))
def test_lifecycle_parts_are_ignored(part_type):
    assert normalize_part({"type": part_type}) is None


def test_unknown_part_type_is_ignored():
    assert normalize_part({"type": "telemetry"}) is None


def test_attribute_style_parts():
    part = SimpleNamespace(type="text-delta", text="obj")
    assert normalize_part(part) == TextChunk(text="obj")


# ---------------------------------------------------------------------------
# Usage
# ---------------------------------------------------------------------------

def test_usage_details():
    chunk = normalize_part({
        "type": "usage",
        "usage": {
            "inputTokens": 120,
            "outputTokens": 30,
            "details": {"cachedInputTokens": 100, "reasoningTokens": 12},
        },
    })
    assert chunk == UsageChunk(
        input_tokens=120, output_tokens=30, cache_read_tokens=100, cache_write_tokens=None, reasoning_tokens=12
    )


def test_usage_fields_at_top_level():
    chunk = normalize_part({"type": "usage", "inputTokens": 5, "outputTokens": 7})
    assert (chunk.input_tokens, chunk.output_tokens) == (5, 7)


def test_unreported_counts_stay_none_but_zero_is_kept():
    chunk = usage_chunk_from({"inputTokens": 10, "outputTokens": 2, "details": {"cachedInputTokens": 0}})
    assert chunk.cache_read_tokens == 0
    assert chunk.cache_write_tokens is None
    assert chunk.reasoning_tokens is None


def test_missing_input_output_default_to_zero():
    chunk = usage_chunk_from({})
    assert (chunk.input_tokens, chunk.output_tokens) == (0, 0)


def test_provider_metadata_cache_figures_take_precedence():
    chunk = usage_chunk_from(
        {"inputTokens": 100, "outputTokens": 10, "details": {"cachedInputTokens": 1}},
        {"groq": {"promptCacheHitTokens": 80, "promptCacheMissTokens": 20}},
    )
    assert chunk.cache_read_tokens == 80
    assert chunk.cache_write_tokens == 20


def test_anthropic_metadata_keys():
    chunk = usage_chunk_from(
        {"inputTokens": 100, "outputTokens": 10},
        {"anthropic": {"cacheReadInputTokens": 64, "cacheCreationInputTokens": 32}},
    )
    assert (chunk.cache_read_tokens, chunk.cache_write_tokens) == (64, 32)


def test_negative_and_non_numeric_counts_are_not_reported():
    chunk = usage_chunk_from({"inputTokens": -1, "outputTokens": "7", "details": {"reasoningTokens": True}})
    assert (chunk.input_tokens, chunk.output_tokens) == (0, 0)
    assert chunk.reasoning_tokens is None


@pytest.mark.parametrize("part", [
    {"type": "tool-input-start", "toolName": "ls"},
    {"type": "tool-input-delta", "delta": "{}"},
    {"type": "tool-input-end"},
])
def test_tool_input_part_without_id_is_dropped_with_warning(part, caplog):
    with caplog.at_level("WARNING"):
        assert normalize_part(part) is None
    assert "without a tool call id" in caplog.text


def test_lifecycle_part_is_logged_at_debug(caplog):
    with caplog.at_level("DEBUG", logger="agent_relay.infrastructure.stream.normalizer"):
        normalize_part({"type": "finish-step"})
    assert "finish-step" in caplog.text
