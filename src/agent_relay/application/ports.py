"""Ports (abstract interfaces) used by the application layer.

Each port is a ``Protocol`` so the turn driver depends only on the *shape* of
the collaborator. Any object with a matching ``create_message`` works,
including SDK wrappers and test doubles.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Dict, List, Optional, Protocol


class ProviderClient(Protocol):
    """Streaming LLM provider.

    ``messages`` and ``tools`` are already in wire format (see
    ``agent_relay.infrastructure.convert``). The returned async iterator yields
    provider stream parts: dicts or objects with a ``type`` discriminator
    (``text-delta``, ``reasoning-delta``, ``tool-input-start``/``-delta``/``-end``,
    ``source``, ``usage``, ``error`` and lifecycle parts). Transport failures are
    raised from the iterator as the client's own exception types.
    """

    def create_message(
        self,
        system_prompt: str,
        messages: List[Dict[str, Any]],
        *,
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Any = None,
    ) -> AsyncIterator[Any]: ...
