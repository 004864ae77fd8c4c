"""Reassemble streamed tool-call fragments into complete tool calls.

One state machine per call id::

    NotStarted --start--> Accumulating --end--> Complete | Malformed
                               |
                             cancel --> Discarded

Calls are independent: fragments for different ids may interleave freely, and
only the order of deltas within one id matters. Out-of-protocol events
(a second ``start`` for a live or finished call, ``delta``/``end`` for an id
that never started) are logged, recorded in ``violations`` and otherwise
ignored. Arguments that fail to parse become a ``MalformedToolCall`` so the
model can be told its call was invalid.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from agent_relay.domain import (
    Chunk,
    MalformedToolCall,
    StreamProtocolViolation,
    ToolCallDeltaChunk,
    ToolCallEndChunk,
    ToolCallParseError,
    ToolCallRequest,
    ToolCallResult,
    ToolCallStartChunk,
    ToolCallStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class _CallState:
    name: str
    status: ToolCallStatus = ToolCallStatus.ACCUMULATING
    fragments: List[str] = field(default_factory=list)
    result: Optional[ToolCallResult] = None


def _require_id(call_id: Optional[str]) -> str:
    if call_id is None:
        raise ValueError("tool call id must not be None")
    return call_id


class ToolCallAssembler:
    """Tool-call table for one provider response."""

    def __init__(self) -> None:
        self._calls: Dict[str, _CallState] = {}
        self._cancelled = False
        self.violations: List[StreamProtocolViolation] = []
        self.parse_errors: List[ToolCallParseError] = []

    # -- protocol events ---------------------------------------------------

    def start(self, call_id: str, name: str) -> None:
        call_id = _require_id(call_id)
        if self._cancelled:
            return
        state = self._calls.get(call_id)
        if state is not None:
            self._violation(call_id, "start", f"call is already {state.status.value}")
            return
        self._calls[call_id] = _CallState(name=name)

    def delta(self, call_id: str, fragment: str) -> None:
        call_id = _require_id(call_id)
        if self._cancelled:
            return
        state = self._calls.get(call_id)
        if state is None:
            self._violation(call_id, "delta", "call was never started")
            return
        if state.status is not ToolCallStatus.ACCUMULATING:
            self._violation(call_id, "delta", f"call is already {state.status.value}")
            return
        state.fragments.append(fragment)

    def end(self, call_id: str) -> Optional[ToolCallResult]:
        """Finish ``call_id``; returns the result, or ``None`` if the event was ignored."""
        call_id = _require_id(call_id)
        if self._cancelled:
            return None
        state = self._calls.get(call_id)
        if state is None:
            self._violation(call_id, "end", "call was never started")
            return None
        if state.status is not ToolCallStatus.ACCUMULATING:
            self._violation(call_id, "end", f"call is already {state.status.value}")
            return None
        return self._finish(call_id, state)

    def feed(self, chunk: Chunk) -> Optional[ToolCallResult]:
        """Dispatch a tool-call chunk; other chunk types are ignored."""
        if isinstance(chunk, ToolCallStartChunk):
            self.start(chunk.id, chunk.name)
        elif isinstance(chunk, ToolCallDeltaChunk):
            self.delta(chunk.id, chunk.delta)
        elif isinstance(chunk, ToolCallEndChunk):
            return self.end(chunk.id)
        return None

    # -- stream lifecycle --------------------------------------------------

    def cancel(self) -> List[str]:
        """Discard every open call and ignore all later events. Returns the discarded ids."""
        discarded = []
        for call_id, state in self._calls.items():
            if state.status is ToolCallStatus.ACCUMULATING:
                state.status = ToolCallStatus.DISCARDED
                state.fragments = []
                discarded.append(call_id)
        self._cancelled = True
        if discarded:
            logger.debug("Discarded %d open tool call(s): %s", len(discarded), discarded)
        return discarded

    def flush(self) -> List[ToolCallResult]:
        """Finish calls still open at a normal end of stream (providers that omit ``end``)."""
        if self._cancelled:
            return []
        return [
            self._finish(call_id, state)
            for call_id, state in self._calls.items()
            if state.status is ToolCallStatus.ACCUMULATING
        ]

    # -- inspection --------------------------------------------------------

    def status(self, call_id: str) -> ToolCallStatus:
        state = self._calls.get(_require_id(call_id))
        return state.status if state is not None else ToolCallStatus.NOT_STARTED

    @property
    def results(self) -> List[ToolCallResult]:
        """Complete and malformed calls, in the order they started."""
        return [state.result for state in self._calls.values() if state.result is not None]

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    # -- internals ---------------------------------------------------------

    def _finish(self, call_id: str, state: _CallState) -> ToolCallResult:
        raw = "".join(state.fragments)
        state.fragments = []
        try:
            arguments = json.loads(raw if raw.strip() else "{}")
        except json.JSONDecodeError as exc:
            error = ToolCallParseError(call_id, raw, str(exc))
            self.parse_errors.append(error)
            logger.warning("%s", error)
            state.status = ToolCallStatus.MALFORMED
            state.result = MalformedToolCall(
                call_id=call_id,
                tool_name=state.name,
                raw_arguments=raw,
                error=str(exc),
            )
            return state.result
        state.status = ToolCallStatus.COMPLETE
        state.result = ToolCallRequest(call_id=call_id, tool_name=state.name, arguments=arguments)
        return state.result

    def _violation(self, call_id: str, event: str, reason: str) -> None:
        violation = StreamProtocolViolation(call_id, event, reason)
        self.violations.append(violation)
        logger.warning("Ignoring %s", violation)
