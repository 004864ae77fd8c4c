"""Domain and application errors."""

from __future__ import annotations

from typing import Any, Optional


class RelayError(Exception):
    """Base for relay errors."""
    pass


class ConversionError(RelayError):
    """A canonical message or tool definition could not be converted to wire format."""
    pass


class StreamProtocolViolation(RelayError):
    """Orphan or duplicate tool-call event from a provider stream.

    Never raised on the data path: the assembler logs it and keeps going.
    Instances are kept on the assembler so callers can inspect what was ignored.
    """

    def __init__(self, call_id: str, event: str, reason: str) -> None:
        super().__init__(f"{event} for tool call {call_id!r}: {reason}")
        self.call_id = call_id
        self.event = event
        self.reason = reason


class ToolCallParseError(RelayError):
    """Accumulated tool-call arguments are not valid JSON."""

    def __init__(self, call_id: str, raw_arguments: str, detail: str) -> None:
        super().__init__(f"Invalid arguments for tool call {call_id!r}: {detail}")
        self.call_id = call_id
        self.raw_arguments = raw_arguments
        self.detail = detail


class ProviderError(RelayError):
    """A provider call failed; ``status`` is the HTTP-like status code when known.

    Retry policy belongs to the caller, which should branch on ``status``.
    """

    def __init__(self, message: str, *, provider_label: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.provider_label = provider_label
        self.status = status

    @property
    def original(self) -> Any:
        """The untouched error raised by the provider client."""
        return self.__cause__
