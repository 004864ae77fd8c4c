"""Classify provider errors by shape.

Provider SDKs and HTTP clients raise unrelated exception types, so the
classifier only looks at which fields are present:

- retry wrapper: ``errors`` (the attempts) plus ``lastError``/``last_error``;
- single API call: a message plus an HTTP-like status (``status``,
  ``statusCode``, ``status_code`` or ``response.status_code``);
- anything else: the error's own message, then its string form.

Both dicts and objects are accepted. Retry policy is the caller's decision;
it should branch on ``status``.
"""

from __future__ import annotations

from typing import Any, Optional

from agent_relay.domain import ProviderError, ProviderErrorInfo

_STATUS_FIELDS = ("status", "statusCode", "status_code")


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _as_status(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value or None
    if isinstance(value, str) and value.isdigit():
        return int(value) or None
    return None


def _status_of(obj: Any) -> Optional[int]:
    if obj is None:
        return None
    for name in _STATUS_FIELDS:
        status = _as_status(_field(obj, name))
        if status is not None:
            return status
    response = _field(obj, "response")
    if response is not None:
        return _as_status(_field(response, "status_code"))
    return None


def _message_of(obj: Any) -> str:
    message = _field(obj, "message")
    if isinstance(message, str) and message:
        return message
    text = str(obj)
    return text or "Unknown error"


def _last_error(error: Any) -> Any:
    last = _field(error, "lastError")
    if last is None:
        last = _field(error, "last_error")
    return last


def _is_retry_wrapper(error: Any) -> bool:
    return isinstance(_field(error, "errors"), (list, tuple)) and _last_error(error) is not None


def classify_provider_error(error: Any, provider_label: str) -> ProviderErrorInfo:
    """Turn any provider error into ``{provider_label, message, status, cause}``.

    The message is always prefixed ``"<provider_label>: "``.

    Example:
        >>> info = classify_provider_error(
        ...     {"errors": [1, 2, 3], "lastError": {"message": "Too Many Requests", "status": 429}},
        ...     "Groq",
        ... )
        >>> info.message
        'Groq: Failed after 3 attempts (429): Too Many Requests'
    """
    if error is None:
        return ProviderErrorInfo(provider_label=provider_label, message=f"{provider_label}: Unknown error")

    if _is_retry_wrapper(error):
        last = _last_error(error)
        attempts = len(_field(error, "errors"))
        status = _status_of(last) or _status_of(error)
        inner = _message_of(last)
        if status is not None:
            detail = f"Failed after {attempts} attempts ({status}): {inner}"
        else:
            detail = f"Failed after {attempts} attempts: {inner}"
    else:
        status = _status_of(error)
        inner = _message_of(error)
        detail = f"API Error ({status}): {inner}" if status is not None else inner

    return ProviderErrorInfo(
        provider_label=provider_label,
        message=f"{provider_label}: {detail}",
        status=status,
        cause=error,
    )


def to_provider_error(error: Any, provider_label: str) -> ProviderError:
    """Classify ``error`` and wrap it as a ``ProviderError`` whose ``__cause__`` is the original."""
    info = classify_provider_error(error, provider_label)
    wrapped = ProviderError(info.message, provider_label=provider_label, status=info.status)
    if isinstance(error, BaseException):
        wrapped.__cause__ = error
    return wrapped
