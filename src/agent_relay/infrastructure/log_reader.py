"""Read stored task event logs.

Two layouts are accepted: JSON Lines (one event per line) and a single JSON
array (the host's ``ui_messages.json``). Bad lines and records without an
id are skipped with a warning; a missing file raises ``FileNotFoundError``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Union

from agent_relay.domain import LogEvent

logger = logging.getLogger(__name__)


def _to_events(records: Iterable[Any], source: str) -> List[LogEvent]:
    events: List[LogEvent] = []
    for n, record in enumerate(records, start=1):
        if not isinstance(record, dict) or ("id" not in record and "ts" not in record):
            logger.warning("%s: record %d has no id; skipped", source, n)
            continue
        try:
            events.append(LogEvent.from_dict(record))
        except (TypeError, ValueError) as exc:
            logger.warning("%s: record %d is invalid (%s); skipped", source, n, exc)
    return events


def parse_log_text(text: str, source: str = "<log>") -> List[LogEvent]:
    """Parse JSON Lines or a JSON array of event records."""
    stripped = text.strip()
    if stripped.startswith("["):
        try:
            return _to_events(json.loads(stripped), source)
        except json.JSONDecodeError as exc:
            logger.warning("%s: not a JSON array (%s); trying JSON Lines", source, exc)

    records: List[Any] = []
    for n, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            records.append(json.loads(line))
        except json.JSONDecodeError:
            logger.warning("%s: line %d is not valid JSON; skipped", source, n)
    return _to_events(records, source)


def read_log_events(path: Union[str, Path]) -> List[LogEvent]:
    """Read the event log at ``path``."""
    p = Path(path).expanduser()
    if not p.is_file():
        raise FileNotFoundError(f"Event log not found: {p}")
    return parse_log_text(p.read_text(encoding="utf-8"), source=str(p))
