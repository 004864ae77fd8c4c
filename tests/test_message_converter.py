"""Tests for canonical message → wire message conversion."""
from __future__ import annotations

import pytest

from agent_relay.domain import (
    ConversionError,
    ImageBlock,
    Message,
    ReasoningBlock,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from agent_relay.infrastructure.convert import (
    convert_messages,
    flatten_to_string_content,
    message_from_dict,
)


def _assistant_call(call_id: str = "call_1", name: str = "read_file", args=None) -> Message:
    return Message(role="assistant", content=[ToolUseBlock(id=call_id, name=name, input=args or {"path": "a.py"})])


# ---------------------------------------------------------------------------
# Tool results
# ---------------------------------------------------------------------------

def test_tool_result_becomes_separate_tool_message_with_resolved_name():
    wire = convert_messages([
        _assistant_call(),
        Message(role="user", content=[ToolResultBlock(tool_use_id="call_1", output="print('hi')")]),
    ])
    assert wire[1] == {
        "role": "tool",
        "content": [{
            "type": "tool-result",
            "toolCallId": "call_1",
            "toolName": "read_file",
            "output": {"type": "text", "value": "print('hi')"},
        }],
    }


def test_tool_results_precede_user_text_of_same_message():
    wire = convert_messages([
        _assistant_call(),
        Message(role="user", content=[
            TextBlock(text="also look at b.py"),
            ToolResultBlock(tool_use_id="call_1", output="ok"),
        ]),
    ])
    assert [m["role"] for m in wire] == ["assistant", "tool", "user"]
    assert wire[2]["content"] == [{"type": "text", "text": "also look at b.py"}]


def test_orphaned_tool_result_gets_unknown_tool_name():
    wire = convert_messages([Message(role="user", content=[ToolResultBlock(tool_use_id="ghost", output="x")])])
    assert wire[0]["content"][0]["toolName"] == "unknown_tool"
    assert wire[0]["content"][0]["toolCallId"] == "ghost"


def test_orphan_sentinel_is_configurable():
    wire = convert_messages(
        [Message(role="user", content=[ToolResultBlock(tool_use_id="ghost", output="x")])],
        unknown_tool_name="missing",
    )
    assert wire[0]["content"][0]["toolName"] == "missing"


def test_empty_tool_output_uses_placeholder():
    wire = convert_messages([
        _assistant_call(),
        Message(role="user", content=[ToolResultBlock(tool_use_id="call_1", output="")]),
    ])
    assert wire[1]["content"][0]["output"]["value"] == "(empty)"


def test_list_tool_output_keeps_text_and_marks_images():
    output = [TextBlock(text="line 1"), ImageBlock(mime_type="image/png", data="AAAA"), TextBlock(text="line 2")]
    wire = convert_messages([
        _assistant_call(),
        Message(role="user", content=[ToolResultBlock(tool_use_id="call_1", output=output)]),
    ])
    assert wire[1]["content"][0]["output"]["value"] == "line 1\n(image)\nline 2"


def test_tool_use_in_user_message_is_a_conversion_error():
    with pytest.raises(ConversionError):
        convert_messages([Message(role="user", content=[ToolUseBlock(id="x", name="y")])])


def test_unknown_role_is_a_conversion_error():
    with pytest.raises(ConversionError, match="role"):
        convert_messages([Message(role="system", content=[TextBlock(text="hi")])])


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

def test_base64_image_becomes_data_uri():
    wire = convert_messages([Message(role="user", content=[ImageBlock(mime_type="image/jpeg", data="Zm9v")])])
    assert wire[0]["content"][0] == {
        "type": "image",
        "image": "data:image/jpeg;base64,Zm9v",
        "mimeType": "image/jpeg",
    }


def test_url_image_passes_through():
    wire = convert_messages([Message(role="user", content=[ImageBlock(url="https://example.com/cat.png")])])
    assert wire[0]["content"][0] == {"type": "image", "image": "https://example.com/cat.png"}


def test_image_without_data_or_url_is_rejected():
    with pytest.raises(ConversionError):
        convert_messages([Message(role="user", content=[ImageBlock(mime_type="image/png")])])


# ---------------------------------------------------------------------------
# Assistant messages
# ---------------------------------------------------------------------------

def test_empty_assistant_message_becomes_single_empty_text_block():
    wire = convert_messages([Message(role="assistant", content=[])])
    assert wire == [{"role": "assistant", "content": [{"type": "text", "text": ""}]}]


def test_assistant_parts_ordered_reasoning_text_tool_calls():
    wire = convert_messages([Message(role="assistant", content=[
        TextBlock(text="first"),
        ToolUseBlock(id="c1", name="ls", input={"path": "."}),
        ReasoningBlock(text="thinking"),
        TextBlock(text="second"),
    ])])
    content = wire[0]["content"]
    assert content[0] == {"type": "reasoning", "text": "thinking"}
    assert content[1] == {"type": "text", "text": "first\nsecond"}
    assert content[2] == {"type": "tool-call", "toolCallId": "c1", "toolName": "ls", "input": {"path": "."}}


def test_message_level_reasoning_wins_over_blocks():
    wire = convert_messages([Message(
        role="assistant",
        content=[ReasoningBlock(text="block"), TextBlock(text="answer")],
        reasoning_content="canonical",
    )])
    reasoning = [p for p in wire[0]["content"] if p["type"] == "reasoning"]
    assert reasoning == [{"type": "reasoning", "text": "canonical"}]


# ---------------------------------------------------------------------------
# Flattening
# ---------------------------------------------------------------------------

def test_flatten_collapses_all_text_content():
    wire = convert_messages(
        [Message(role="user", content=[TextBlock(text="a"), TextBlock(text="b")])],
        transform=flatten_to_string_content,
    )
    assert wire == [{"role": "user", "content": "a\nb"}]


def test_flatten_leaves_mixed_content_and_tool_messages():
    wire = [
        {"role": "user", "content": [{"type": "text", "text": "a"}, {"type": "image", "image": "u"}]},
        {"role": "tool", "content": [{"type": "tool-result", "toolCallId": "1", "toolName": "t",
                                      "output": {"type": "text", "value": "v"}}]},
        {"role": "assistant", "content": []},
    ]
    assert flatten_to_string_content(wire) == wire


def test_flatten_respects_role_switches():
    wire = [
        {"role": "user", "content": [{"type": "text", "text": "u"}]},
        {"role": "assistant", "content": [{"type": "text", "text": "a"}]},
    ]
    out = flatten_to_string_content(wire, flatten_user=False)
    assert out[0]["content"] == [{"type": "text", "text": "u"}]
    assert out[1]["content"] == "a"


# ---------------------------------------------------------------------------
# Dict ingestion
# ---------------------------------------------------------------------------

def test_message_from_dict_string_content():
    msg = message_from_dict({"role": "user", "content": "hello"})
    assert msg.content == [TextBlock(text="hello")]


def test_message_from_dict_anthropic_blocks():
    msg = message_from_dict({
        "role": "user",
        "content": [
            {"type": "tool_result", "tool_use_id": "t1", "content": [{"type": "text", "text": "done"}]},
            {"type": "image", "source": {"type": "base64", "media_type": "image/png", "data": "AA"}},
        ],
    })
    assert msg.content[0] == ToolResultBlock(tool_use_id="t1", output=[TextBlock(text="done")])
    assert msg.content[1] == ImageBlock(mime_type="image/png", data="AA")


def test_message_from_dict_unknown_block_type():
    with pytest.raises(ConversionError, match="Unknown content block"):
        message_from_dict({"role": "user", "content": [{"type": "video"}]})
