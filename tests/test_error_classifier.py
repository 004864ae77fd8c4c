"""Tests for shape-based provider error classification."""
from __future__ import annotations

from types import SimpleNamespace

import httpx

from agent_relay.domain import ProviderError
from agent_relay.infrastructure.errors import classify_provider_error, to_provider_error


def test_retry_wrapper_reports_attempts_and_status():
    error = {"errors": [{}, {}, {}], "lastError": {"message": "Too Many Requests", "status": 429}}
    info = classify_provider_error(error, "Groq")
    assert info.message == "Groq: Failed after 3 attempts (429): Too Many Requests"
    assert info.status == 429
    assert info.provider_label == "Groq"
    assert info.cause is error


def test_retry_wrapper_without_status():
    error = SimpleNamespace(errors=[ValueError("a")], last_error=ValueError("socket closed"))
    info = classify_provider_error(error, "Fireworks")
    assert info.message == "Fireworks: Failed after 1 attempts: socket closed"
    assert info.status is None


def test_api_error_with_status_code():
    info = classify_provider_error({"message": "Invalid API key", "statusCode": 401}, "OpenAI")
    assert info.message == "OpenAI: API Error (401): Invalid API key"
    assert info.status == 401


def test_httpx_status_error_reads_response_status():
    request = httpx.Request("POST", "https://api.example.com/v1/chat/completions")
    response = httpx.Response(503, request=request)
    error = httpx.HTTPStatusError("Service Unavailable", request=request, response=response)
    info = classify_provider_error(error, "Local")
    assert info.status == 503
    assert info.message == "Local: API Error (503): Service Unavailable"


def test_plain_exception_uses_its_message():
    info = classify_provider_error(RuntimeError("connection reset"), "Groq")
    assert info.message == "Groq: connection reset"
    assert info.status is None


def test_unknown_shapes():
    assert classify_provider_error(None, "X").message == "X: Unknown error"
    assert classify_provider_error("weird", "X").message == "X: weird"
    assert classify_provider_error(42, "X").message == "X: 42"
    assert classify_provider_error(RuntimeError(), "X").message == "X: Unknown error"


def test_string_status_is_parsed():
    assert classify_provider_error({"message": "m", "status": "500"}, "X").status == 500


def test_to_provider_error_keeps_the_original_as_cause():
    original = ConnectionError("refused")
    wrapped = to_provider_error(original, "Local")
    assert isinstance(wrapped, ProviderError)
    assert wrapped.__cause__ is original
    assert wrapped.original is original
    assert wrapped.provider_label == "Local"
    assert str(wrapped) == "Local: refused"


def test_to_provider_error_from_dict_has_no_cause():
    wrapped = to_provider_error({"message": "nope", "status": 400}, "X")
    assert wrapped.status == 400
    assert wrapped.__cause__ is None
