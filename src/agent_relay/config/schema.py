"""Configuration schema. The default provider is a local OpenAI-compatible server; any compatible backend works via base_url + model."""

from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, Field, model_validator

from .constants import (
    PROVIDER_STREAM_DEFAULT_TIMEOUT_S,
    UNKNOWN_TOOL_NAME,
)


class ProviderConfig(BaseModel):
    """One LLM provider endpoint (OpenAI chat-completions streaming API)."""
    label: str = Field(..., description="Human-readable provider name used as the prefix of classified errors, e.g. 'Groq'.")
    base_url: str = Field(..., description="e.g. http://localhost:11434/v1 or https://api.groq.com/openai/v1")
    model: str = Field(..., description="Model id as understood by the provider.")
    api_key: str = Field("", description="Bearer token; empty for local backends (no header sent).")
    timeout_s: float = Field(
        default=PROVIDER_STREAM_DEFAULT_TIMEOUT_S,
        description="HTTP read timeout for a streamed response.",
    )
    temperature: float = 0.1
    max_tokens: int = 4096
    flatten_messages: bool = Field(
        False,
        description="Collapse all-text message content to a plain string (for providers that reject content arrays).",
    )
    tool_format: str = Field(
        "chat",
        description="Tool schema layout: 'chat' (chat-completions {type, function}) or 'responses' (flat Responses API).",
    )


class ReducerConfig(BaseModel):
    """Which log-event subtypes the conversation log reducer treats specially."""
    hidden_say_subtypes: List[str] = Field(
        default_factory=lambda: ["checkpoint_saved", "api_req_started", "api_req_finished", "user_feedback"],
        description="Say subtypes that update bookkeeping but never enter the timeline.",
    )
    hidden_ask_subtypes: List[str] = Field(
        default_factory=lambda: ["command_output", "resume_task", "resume_completed_task"],
    )
    tool_invocation_subtypes: List[str] = Field(
        default_factory=lambda: ["tool", "command", "use_mcp_server"],
        description="Ask subtypes that count as one attempt for the tool they name.",
    )
    tool_failure_subtypes: List[str] = Field(
        default_factory=lambda: ["tool_error"],
        description="Say subtypes that count as one failure for the tool named in their JSON payload.",
    )


class RelayConfig(BaseModel):
    """Root config: providers and reducer policy."""
    providers: Dict[str, ProviderConfig]
    default_provider: str = "local"
    reducer: ReducerConfig = Field(default_factory=ReducerConfig)
    unknown_tool_name: str = UNKNOWN_TOOL_NAME

    @model_validator(mode="after")
    def _default_provider_exists(self) -> "RelayConfig":
        """Fail at load time rather than on the first chat call."""
        if self.default_provider not in self.providers:
            raise ValueError(
                f"default_provider {self.default_provider!r} is not defined in providers "
                f"(known: {sorted(self.providers)})."
            )
        return self


# Default: Ollama's OpenAI-compatible endpoint on localhost:11434
DEFAULT_CONFIG = RelayConfig(
    providers={
        "local": ProviderConfig(
            label="Local",
            base_url="http://localhost:11434/v1",
            model="qwen2.5:7b",
        ),
    },
)
