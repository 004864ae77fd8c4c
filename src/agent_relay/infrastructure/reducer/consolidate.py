"""Pure list transforms over stored log events, used for history display and usage totals."""

from __future__ import annotations

import json
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple

from agent_relay.config.constants import COMMAND_OUTPUT_STRING, TEXT_PART_SEPARATOR
from agent_relay.domain import LogEvent, UsageSnapshot

from .usage import consolidate_token_usage, parse_json_object


def _is_ask(event: LogEvent, subtype: str) -> bool:
    return event.kind == "ask" and event.subtype == subtype


def consolidate_api_requests(events: Sequence[LogEvent]) -> List[LogEvent]:
    """Merge each ``api_req_finished`` payload into the preceding ``api_req_started``.

    Finished events are always removed; a finished event with no started event
    before it is dropped.
    """
    result: List[LogEvent] = []
    last_started: Optional[int] = None
    for event in events:
        if event.kind == "say" and event.subtype == "api_req_started":
            last_started = len(result)
            result.append(event)
        elif event.kind == "say" and event.subtype == "api_req_finished":
            if last_started is None:
                continue
            started = result[last_started]
            merged = {**parse_json_object(started.text), **parse_json_object(event.text)}
            result[last_started] = replace(started, text=json.dumps(merged))
        else:
            result.append(event)
    return result


def _collect_mcp_responses(events: Sequence[LogEvent], start: int) -> Tuple[List[str], List[int]]:
    responses: List[str] = []
    indices: List[int] = []
    for j in range(start + 1, len(events)):
        candidate = events[j]
        if _is_ask(candidate, "use_mcp_server"):
            break
        if candidate.subtype == "mcp_server_response":
            responses.append(candidate.text)
            indices.append(j)
    return responses, indices


def _collect_command_output(events: Sequence[LogEvent], start: int) -> Tuple[str, List[int]]:
    """Command text with its outputs appended after an ``Output:`` marker.

    An output repeated verbatim by the other event kind (an ask echoing a say) is skipped.
    """
    text = events[start].text
    indices: List[int] = []
    previous: Optional[Tuple[str, str]] = None
    for j in range(start + 1, len(events)):
        candidate = events[j]
        if _is_ask(candidate, "command"):
            break
        if candidate.subtype != "command_output":
            continue
        if previous is None:
            text += TEXT_PART_SEPARATOR + COMMAND_OUTPUT_STRING
        duplicate = previous is not None and previous[0] != candidate.kind and previous[1] == candidate.text
        if candidate.text and not duplicate:
            marker_end = text.index(COMMAND_OUTPUT_STRING) + len(COMMAND_OUTPUT_STRING)
            if previous is not None and len(text) > marker_end:
                text += TEXT_PART_SEPARATOR
            text += candidate.text
        previous = (candidate.kind, candidate.text)
        indices.append(j)
    return text, indices


def consolidate_commands(events: Sequence[LogEvent]) -> List[LogEvent]:
    """Fold command outputs into their ``command`` ask and MCP responses into their ``use_mcp_server`` ask.

    MCP responses are joined with newlines and stored as ``response`` in the
    request's JSON text. Output and response events never appear in the result.
    """
    consolidated: Dict[int, LogEvent] = {}
    absorbed = set()
    i = 0
    while i < len(events):
        event = events[i]
        if _is_ask(event, "use_mcp_server"):
            responses, indices = _collect_mcp_responses(events, i)
            if responses:
                data = parse_json_object(event.text or "{}")
                data["response"] = TEXT_PART_SEPARATOR.join(responses)
                consolidated[i] = replace(event, text=json.dumps(data))
            absorbed.update(indices)
        elif _is_ask(event, "command"):
            text, indices = _collect_command_output(events, i)
            consolidated[i] = replace(event, text=text)
            absorbed.update(indices)
            if indices:
                i = indices[-1]
        i += 1

    result: List[LogEvent] = []
    for index, event in enumerate(events):
        if index in absorbed or event.subtype in ("command_output", "mcp_server_response"):
            continue
        result.append(consolidated.get(index, event))
    return result


def summarize_history(events: Sequence[LogEvent]) -> UsageSnapshot:
    """Usage totals for a stored task history.

    The first event (the task prompt) is skipped, then commands and API
    requests are consolidated before usage is folded.
    """
    if len(events) <= 1:
        return UsageSnapshot()
    return consolidate_token_usage(consolidate_api_requests(consolidate_commands(list(events[1:]))))
