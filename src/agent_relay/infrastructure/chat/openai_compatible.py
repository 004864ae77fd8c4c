"""Streaming OpenAI-compatible provider client.

Works with any backend exposing ``POST /v1/chat/completions`` with
``stream: true`` (server-sent events): OpenAI, Groq, DeepSeek, Fireworks,
vLLM, Ollama, LM Studio and others.

The client speaks the provider-neutral message layout produced by
``agent_relay.infrastructure.convert`` and yields provider stream parts
(``text-delta``, ``reasoning-delta``, ``tool-input-*``, ``usage``), so the
rest of the pipeline never sees chat-completions chunk shapes. Raises
``httpx.HTTPStatusError`` for any non-2xx response without retrying.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import httpx

from agent_relay.config.constants import PROVIDER_STREAM_DEFAULT_TIMEOUT_S, TEXT_PART_SEPARATOR
from agent_relay.infrastructure.stream.raw_chunks import RawToolCallTracker

logger = logging.getLogger(__name__)

StreamPart = Dict[str, Any]

_SSE_DATA_PREFIX = "data:"
_SSE_DONE = "[DONE]"


# ---------------------------------------------------------------------------
# Outbound: provider-neutral messages to chat-completions messages
# ---------------------------------------------------------------------------

def _user_content(content: Union[str, List[Dict[str, Any]]]) -> Union[str, List[Dict[str, Any]]]:
    if isinstance(content, str):
        return content
    parts: List[Dict[str, Any]] = []
    for part in content:
        if part.get("type") == "text":
            parts.append({"type": "text", "text": part.get("text", "")})
        elif part.get("type") == "image":
            parts.append({"type": "image_url", "image_url": {"url": part.get("image")}})
    return parts


def _assistant_message(content: Union[str, List[Dict[str, Any]]]) -> Dict[str, Any]:
    if isinstance(content, str):
        return {"role": "assistant", "content": content}
    texts: List[str] = []
    reasoning: List[str] = []
    tool_calls: List[Dict[str, Any]] = []
    for part in content:
        part_type = part.get("type")
        if part_type == "text":
            texts.append(part.get("text", ""))
        elif part_type == "reasoning":
            reasoning.append(part.get("text", ""))
        elif part_type == "tool-call":
            tool_calls.append({
                "id": part["toolCallId"],
                "type": "function",
                "function": {"name": part["toolName"], "arguments": json.dumps(part.get("input", {}))},
            })
    message: Dict[str, Any] = {"role": "assistant", "content": TEXT_PART_SEPARATOR.join(texts) or None}
    if reasoning:
        message["reasoning_content"] = "".join(reasoning)
    if tool_calls:
        message["tool_calls"] = tool_calls
    return message


def to_chat_completions_messages(system_prompt: str, messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Translate wire messages to the chat-completions ``messages`` array."""
    out: List[Dict[str, Any]] = []
    if system_prompt:
        out.append({"role": "system", "content": system_prompt})
    for message in messages:
        role = message.get("role")
        content = message.get("content", "")
        if role == "user":
            out.append({"role": "user", "content": _user_content(content)})
        elif role == "assistant":
            out.append(_assistant_message(content))
        elif role == "tool":
            for result in content:
                output = result.get("output") or {}
                out.append({
                    "role": "tool",
                    "tool_call_id": result.get("toolCallId"),
                    "content": output.get("value", ""),
                })
    return out


# ---------------------------------------------------------------------------
# Inbound: SSE chunks to provider stream parts
# ---------------------------------------------------------------------------

def _usage_part(usage: Dict[str, Any]) -> StreamPart:
    prompt_details = usage.get("prompt_tokens_details") or {}
    completion_details = usage.get("completion_tokens_details") or {}
    details: Dict[str, Any] = {}
    if prompt_details.get("cached_tokens") is not None:
        details["cachedInputTokens"] = prompt_details["cached_tokens"]
    if completion_details.get("reasoning_tokens") is not None:
        details["reasoningTokens"] = completion_details["reasoning_tokens"]
    part: StreamPart = {
        "type": "usage",
        "usage": {
            "inputTokens": usage.get("prompt_tokens"),
            "outputTokens": usage.get("completion_tokens"),
            "details": details,
        },
    }
    # DeepSeek-style cache accounting
    hit, miss = usage.get("prompt_cache_hit_tokens"), usage.get("prompt_cache_miss_tokens")
    if hit is not None or miss is not None:
        part["providerMetadata"] = {"openaiCompatible": {"promptCacheHitTokens": hit, "promptCacheMissTokens": miss}}
    return part


def parts_from_chunk(chunk: Dict[str, Any], tracker: RawToolCallTracker) -> List[StreamPart]:
    """Translate one decoded ``chat.completion.chunk`` into stream parts."""
    parts: List[StreamPart] = []
    for choice in chunk.get("choices") or []:
        delta = choice.get("delta") or {}
        reasoning = delta.get("reasoning_content") or delta.get("reasoning")
        if reasoning:
            parts.append({"type": "reasoning-delta", "text": reasoning})
        if delta.get("content"):
            parts.append({"type": "text-delta", "text": delta["content"]})
        for tc in delta.get("tool_calls") or []:
            fn = tc.get("function") or {}
            parts.extend(tracker.process(
                index=tc.get("index", 0),
                id=tc.get("id"),
                name=fn.get("name"),
                arguments=fn.get("arguments"),
            ))
        parts.extend(tracker.process_finish_reason(choice.get("finish_reason")))
    if chunk.get("usage"):
        parts.append(_usage_part(chunk["usage"]))
    return parts


class OpenAICompatibleProviderClient:
    """Streaming chat-completions client (no backend-specific workarounds)."""

    def __init__(
        self,
        base_url: str,
        model: str,
        *,
        api_key: str = "",
        timeout_s: float = PROVIDER_STREAM_DEFAULT_TIMEOUT_S,
        temperature: float = 0.1,
        max_tokens: int = 4096,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._api_key = api_key
        self._timeout = timeout_s
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._transport = transport

    def build_payload(
        self,
        system_prompt: str,
        messages: List[Dict[str, Any]],
        *,
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Any = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self._model,
            "messages": to_chat_completions_messages(system_prompt, messages),
            "stream": True,
            "stream_options": {"include_usage": True},
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }
        if tools:
            payload["tools"] = tools
            if isinstance(tool_choice, dict) and tool_choice.get("type") == "tool":
                payload["tool_choice"] = {"type": "function", "function": {"name": tool_choice["toolName"]}}
            elif tool_choice:
                payload["tool_choice"] = tool_choice
        return payload

    async def create_message(
        self,
        system_prompt: str,
        messages: List[Dict[str, Any]],
        *,
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Any = None,
    ) -> AsyncIterator[StreamPart]:
        url = f"{self._base_url}/chat/completions"
        headers: Dict[str, str] = {"Accept": "text/event-stream"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        payload = self.build_payload(system_prompt, messages, tools=tools, tool_choice=tool_choice)

        logger.debug(
            "POST %s model=%s messages=%d tools=%d",
            url, self._model, len(payload["messages"]), len(tools or []),
        )
        tracker = RawToolCallTracker()
        timeout = httpx.Timeout(self._timeout)
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            async with client.stream("POST", url, headers=headers, json=payload) as response:
                if response.is_error:
                    await response.aread()
                response.raise_for_status()
                async for line in response.aiter_lines():
                    line = line.strip()
                    if not line.startswith(_SSE_DATA_PREFIX):
                        continue
                    data = line[len(_SSE_DATA_PREFIX):].strip()
                    if data == _SSE_DONE:
                        break
                    try:
                        chunk = json.loads(data)
                    except json.JSONDecodeError as exc:
                        logger.warning("Undecodable SSE data from %s: %s", url, exc)
                        yield {"type": "error", "error": f"Undecodable stream chunk: {exc}"}
                        continue
                    if isinstance(chunk, dict) and chunk.get("error"):
                        yield {"type": "error", "error": chunk["error"]}
                        continue
                    for part in parts_from_chunk(chunk, tracker):
                        yield part
        for part in tracker.finalize():
            yield part
