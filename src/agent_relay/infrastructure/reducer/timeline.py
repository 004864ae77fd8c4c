"""Fold a task's append-only event log into a display timeline plus usage totals.

The log is delivered with repeats: a historical replay batch can overlap live
updates, and a message is re-sent while it streams (``partial=True``) and once
more when final. The reducer is keyed by event id:

- partial deliveries update the entry for their id in place;
- the first final delivery of an id adds it to the seen set and counts its
  usage and tool usage;
- any later delivery of a seen id is dropped.

Usage is therefore driven by the deduplicated stream only, and folding the
same events again never double-counts.
"""

from __future__ import annotations

import copy
import logging
from typing import Dict, Iterable, List, Optional, Set

from agent_relay.config.constants import EXECUTE_COMMAND_TOOL_NAME
from agent_relay.config.schema import ReducerConfig
from agent_relay.domain import LogEvent, TimelineEntry, ToolUsage, ToolUsageStats, UsageSnapshot

from .usage import UsageAccumulator, failed_tool_name, invoked_tool_name, parse_json_object

logger = logging.getLogger(__name__)

_RESUME_ASKS = ("resume_task", "resume_completed_task")
_COMPLETION_TOOL_NAME = "attempt_completion"


class ConversationLogReducer:
    """Reducer state for one task. Not shared between tasks.

    Args:
        config: Which subtypes are hidden or count as tool invocations/failures.
        resuming: True when the task is being restored from history. The first
            ``text`` say of a new task echoes the user's prompt and is hidden;
            when resuming it is real conversation and stays visible.
    """

    def __init__(self, config: Optional[ReducerConfig] = None, *, resuming: bool = False) -> None:
        self._config = config or ReducerConfig()
        self._resuming = resuming
        self._seen: Set[int] = set()
        self._suppressed: Set[int] = set()
        self._first_text_handled = False
        self._entries: Dict[int, TimelineEntry] = {}
        self._pending_command: Optional[str] = None
        self._output_commands: Dict[int, Optional[str]] = {}
        self._usage = UsageAccumulator()
        self._tool_usage: ToolUsageStats = {}
        self._complete = False

    # -- folding -----------------------------------------------------------

    def apply(self, event: LogEvent) -> bool:
        """Fold one delivery. Returns False when it was a no-op (re-delivery of a finalized id)."""
        if event.id in self._seen:
            logger.debug("Dropping re-delivery of finalized event %s", event.id)
            return False
        if event.id in self._suppressed:
            if not event.partial:
                self._seen.add(event.id)
            return False

        if event.kind == "say":
            self._apply_say(event)
        elif event.kind == "ask":
            self._apply_ask(event)
        else:
            logger.debug("Ignoring event %s of unknown kind %r", event.id, event.kind)

        if not event.partial:
            self._finalize(event)
        return True

    def apply_all(self, events: Iterable[LogEvent]) -> bool:
        """Fold ``events`` in order; True if any delivery changed state."""
        changed = False
        for event in events:
            changed = self.apply(event) or changed
        return changed

    # -- outputs -----------------------------------------------------------

    @property
    def timeline(self) -> List[TimelineEntry]:
        return list(self._entries.values())

    @property
    def usage(self) -> UsageSnapshot:
        return self._usage.snapshot

    @property
    def tool_usage(self) -> ToolUsageStats:
        return copy.deepcopy(self._tool_usage)

    @property
    def is_complete(self) -> bool:
        return self._complete

    @property
    def is_resuming(self) -> bool:
        return self._resuming

    @property
    def pending_command(self) -> Optional[str]:
        return self._pending_command

    # -- say ---------------------------------------------------------------

    def _apply_say(self, event: LogEvent) -> None:
        subtype = event.subtype
        if subtype in self._config.hidden_say_subtypes:
            return

        if subtype == "text" and not self._first_text_handled:
            self._first_text_handled = True
            if not self._resuming:
                logger.debug("Suppressing prompt echo %s", event.id)
                self._suppressed.add(event.id)
                if not event.partial:
                    self._seen.add(event.id)
                return

        entry = TimelineEntry(
            id=event.id,
            role="assistant",
            content=event.text,
            kind=event.kind,
            subtype=subtype,
            partial=event.partial,
        )
        if subtype == "command_output":
            command = self._command_for_output(event.id, event.partial)
            entry.role = "tool"
            entry.tool_name = EXECUTE_COMMAND_TOOL_NAME
            entry.tool_display_name = "bash"
            entry.tool_data = {"tool": EXECUTE_COMMAND_TOOL_NAME, "command": command, "output": event.text}
        elif subtype == "reasoning":
            entry.role = "thinking"
        self._entries[event.id] = entry

    def _command_for_output(self, output_id: int, partial: bool) -> Optional[str]:
        """Bind the cached command to this output id; the cache is consumed by the first output.

        An id bound to no command while streaming takes the cached command on its
        final delivery, so a replayed command ask can still reach live output.
        """
        bound = self._output_commands.get(output_id)
        if output_id not in self._output_commands or (
            bound is None and not partial and self._pending_command is not None
        ):
            self._output_commands[output_id] = self._pending_command
            self._pending_command = None
        return self._output_commands[output_id]

    # -- ask ---------------------------------------------------------------

    def _apply_ask(self, event: LogEvent) -> None:
        if event.partial:
            return
        subtype = event.subtype
        if subtype in self._config.hidden_ask_subtypes:
            if subtype in _RESUME_ASKS:
                self._resuming = False
            return

        entry = TimelineEntry(
            id=event.id,
            role="assistant",
            content=event.text,
            kind=event.kind,
            subtype=subtype,
        )
        if subtype == "completion_result":
            self._complete = True
            data = parse_json_object(event.text)
            entry.role = "tool"
            entry.tool_name = _COMPLETION_TOOL_NAME
            entry.tool_display_name = "Task Complete"
            if data:
                entry.tool_data = {"tool": _COMPLETION_TOOL_NAME, "result": data.get("result"), "content": data.get("result")}
            else:
                entry.content = event.text or "Task completed"
                entry.tool_data = {"tool": _COMPLETION_TOOL_NAME, "content": event.text}
        elif subtype == "command":
            self._pending_command = event.text
        elif subtype == "followup":
            data = parse_json_object(event.text)
            entry.content = data.get("question") or event.text
            suggest = data.get("suggest")
            entry.suggestions = suggest if isinstance(suggest, list) else None
        elif subtype == "tool":
            data = parse_json_object(event.text)
            tool = data.get("tool")
            entry.role = "tool"
            if isinstance(tool, str) and tool:
                entry.tool_name = tool
                entry.tool_display_name = tool
                entry.tool_data = data
        self._entries[event.id] = entry

    # -- bookkeeping -------------------------------------------------------

    def _finalize(self, event: LogEvent) -> None:
        self._seen.add(event.id)
        self._usage.add_event(event)
        name = invoked_tool_name(event, self._config)
        if name is not None:
            self._tool_usage.setdefault(name, ToolUsage()).attempts += 1
            return
        name = failed_tool_name(event, self._config)
        if name is not None:
            self._tool_usage.setdefault(name, ToolUsage()).failures += 1


def reduce_log(
    events: Iterable[LogEvent],
    config: Optional[ReducerConfig] = None,
    *,
    resuming: bool = False,
) -> ConversationLogReducer:
    """Fold ``events`` into a fresh reducer and return it."""
    reducer = ConversationLogReducer(config, resuming=resuming)
    reducer.apply_all(events)
    return reducer
