"""Track OpenAI chat-completions tool-call fragments keyed by ``index``.

Chat-completions streams send the call id and function name only on the first
fragment of each call, and some backends send argument text before the name.
The tracker turns those fragments into ``tool-input-*`` stream parts so the
normalizer sees the same taxonomy as every other provider.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

StreamPart = Dict[str, Any]


@dataclass
class _TrackedCall:
    id: str
    name: str = ""
    started: bool = False
    buffered: List[str] = field(default_factory=list)


class RawToolCallTracker:
    """Per-response tracker. Create one per streamed response."""

    def __init__(self) -> None:
        self._calls: Dict[int, _TrackedCall] = {}

    def process(
        self,
        index: int,
        id: Optional[str] = None,
        name: Optional[str] = None,
        arguments: Optional[str] = None,
    ) -> List[StreamPart]:
        """Process one ``delta.tool_calls[i]`` fragment and return the parts it produces."""
        parts: List[StreamPart] = []
        tracked = self._calls.get(index)
        if id and tracked is None:
            tracked = _TrackedCall(id=id)
            self._calls[index] = tracked
        if tracked is None:
            logger.debug("Dropping tool-call fragment for untracked index %s", index)
            return parts

        if name:
            tracked.name = name

        if not tracked.started and tracked.name:
            parts.append({"type": "tool-input-start", "id": tracked.id, "toolName": tracked.name})
            tracked.started = True
            for fragment in tracked.buffered:
                parts.append({"type": "tool-input-delta", "id": tracked.id, "delta": fragment})
            tracked.buffered = []

        if arguments:
            if tracked.started:
                parts.append({"type": "tool-input-delta", "id": tracked.id, "delta": arguments})
            else:
                tracked.buffered.append(arguments)
        return parts

    def process_finish_reason(self, finish_reason: Optional[str]) -> List[StreamPart]:
        """End every started call when the choice finishes with ``tool_calls``."""
        if finish_reason != "tool_calls":
            return []
        return self._end_all()

    def finalize(self) -> List[StreamPart]:
        """End calls that were started but never ended, and reset the tracker."""
        return self._end_all()

    def _end_all(self) -> List[StreamPart]:
        parts = []
        for tracked in self._calls.values():
            if tracked.started:
                parts.append({"type": "tool-input-end", "id": tracked.id})
            else:
                logger.warning("Tool call %s ended before its name arrived; dropping it", tracked.id)
        self._calls.clear()
        return parts

    @property
    def open_calls(self) -> int:
        return len(self._calls)
