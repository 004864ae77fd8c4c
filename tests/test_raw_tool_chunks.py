"""Tests for index-keyed chat-completions tool-call fragment tracking."""
from __future__ import annotations

from agent_relay.infrastructure.stream import RawToolCallTracker


def test_first_fragment_starts_call_and_later_fragments_are_deltas():
    tracker = RawToolCallTracker()
    parts = tracker.process(0, id="call_1", name="read_file", arguments='{"pa')
    assert parts == [
        {"type": "tool-input-start", "id": "call_1", "toolName": "read_file"},
        {"type": "tool-input-delta", "id": "call_1", "delta": '{"pa'},
    ]
    assert tracker.process(0, arguments='th": "a"}') == [
        {"type": "tool-input-delta", "id": "call_1", "delta": 'th": "a"}'},
    ]


def test_arguments_before_name_are_buffered():
    tracker = RawToolCallTracker()
    assert tracker.process(0, id="call_1", arguments="{") == []
    parts = tracker.process(0, name="ls", arguments="}")
    assert [p["type"] for p in parts] == ["tool-input-start", "tool-input-delta", "tool-input-delta"]
    assert [p.get("delta") for p in parts[1:]] == ["{", "}"]


def test_fragment_for_untracked_index_is_dropped():
    tracker = RawToolCallTracker()
    assert tracker.process(3, arguments="{}") == []
    assert tracker.open_calls == 0


def test_finish_reason_tool_calls_ends_all_started_calls():
    tracker = RawToolCallTracker()
    tracker.process(0, id="a", name="x")
    tracker.process(1, id="b", name="y")
    assert tracker.process_finish_reason("stop") == []
    assert tracker.process_finish_reason("tool_calls") == [
        {"type": "tool-input-end", "id": "a"},
        {"type": "tool-input-end", "id": "b"},
    ]
    assert tracker.open_calls == 0
    assert tracker.finalize() == []


def test_finalize_drops_calls_that_never_got_a_name(caplog):
    tracker = RawToolCallTracker()
    tracker.process(0, id="a", name="x")
    tracker.process(1, id="b", arguments="{}")
    with caplog.at_level("WARNING"):
        parts = tracker.finalize()
    assert parts == [{"type": "tool-input-end", "id": "a"}]
    assert "b" in caplog.text
