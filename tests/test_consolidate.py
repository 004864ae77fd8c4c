"""Tests for history consolidation: api requests, command outputs, MCP responses."""
from __future__ import annotations

import json

from agent_relay.infrastructure.log_reader import parse_log_text
from agent_relay.infrastructure.reducer import (
    consolidate_api_requests,
    consolidate_commands,
    summarize_history,
)
from tests.conftest import api_req, ask, say


def test_finished_request_merges_into_started():
    events = consolidate_api_requests([
        api_req(1, request="GET"),
        say(2, "api_req_finished", json.dumps({"tokensIn": 10, "tokensOut": 2})),
        say(3, "text", "done"),
    ])
    assert [e.id for e in events] == [1, 3]
    assert json.loads(events[0].text) == {"request": "GET", "tokensIn": 10, "tokensOut": 2}


def test_orphan_finished_request_is_dropped():
    events = consolidate_api_requests([say(1, "api_req_finished", "{}"), say(2, "text", "x")])
    assert [e.id for e in events] == [2]


def test_command_outputs_fold_into_command():
    events = consolidate_commands([
        ask(1, "command", "npm test"),
        say(2, "command_output", "line 1"),
        say(3, "command_output", "line 2"),
        say(4, "text", "tests pass"),
    ])
    assert [e.id for e in events] == [1, 4]
    assert events[0].text == "npm test\nOutput:line 1\nline 2"


def test_echoed_output_of_other_kind_is_skipped():
    events = consolidate_commands([
        ask(1, "command", "ls"),
        say(2, "command_output", "a.py"),
        ask(3, "command_output", "a.py"),
    ])
    assert events[0].text == "ls\nOutput:a.py"
    assert len(events) == 1


def test_command_without_output_is_unchanged():
    events = consolidate_commands([ask(1, "command", "ls"), ask(2, "command", "pwd")])
    assert [e.text for e in events] == ["ls", "pwd"]


def test_mcp_responses_join_into_request_payload():
    events = consolidate_commands([
        ask(1, "use_mcp_server", json.dumps({"serverName": "github", "toolName": "search"})),
        say(2, "mcp_server_response", "result 1"),
        say(3, "mcp_server_response", "result 2"),
        say(4, "text", "found it"),
    ])
    assert [e.id for e in events] == [1, 4]
    assert json.loads(events[0].text)["response"] == "result 1\nresult 2"


def test_stray_outputs_are_removed():
    events = consolidate_commands([say(1, "command_output", "x"), say(2, "mcp_server_response", "y")])
    assert events == []


def test_summarize_history_skips_the_task_prompt():
    usage = summarize_history([
        say(1, "text", json.dumps({"tokensIn": 1000})),
        api_req(2, tokensIn=100, tokensOut=50, cost=0.01),
        say(3, "api_req_finished", json.dumps({"cacheReads": 30})),
        ask(4, "command", "ls"),
        say(5, "command_output", "a.py"),
    ])
    assert usage.total_tokens_in == 100
    assert usage.total_cache_reads == 30
    assert usage.context_tokens == 150


def test_summarize_empty_history():
    assert summarize_history([]).total_tokens_in == 0


# ---------------------------------------------------------------------------
# Log files
# ---------------------------------------------------------------------------

def test_parse_json_array_in_host_layout():
    text = json.dumps([
        {"ts": 1, "type": "say", "say": "text", "text": "hi"},
        {"ts": 2, "type": "ask", "ask": "followup", "text": "{}", "partial": True},
    ])
    events = parse_log_text(text)
    assert [(e.id, e.kind, e.subtype, e.partial) for e in events] == [(1, "say", "text", False), (2, "ask", "followup", True)]


def test_parse_jsonl_skips_bad_lines(caplog):
    text = '{"id": 1, "kind": "say", "subtype": "text"}\nnot json\n\n{"kind": "say"}\n'
    with caplog.at_level("WARNING"):
        events = parse_log_text(text, "task.jsonl")
    assert [e.id for e in events] == [1]
    assert "task.jsonl" in caplog.text
