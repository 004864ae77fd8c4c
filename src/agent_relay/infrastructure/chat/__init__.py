"""Provider client factory: build the right ProviderClient for a ProviderConfig."""

from __future__ import annotations

from agent_relay.application.ports import ProviderClient
from agent_relay.config.schema import ProviderConfig


def build_provider_client(provider_config: ProviderConfig) -> ProviderClient:
    """Return a streaming client for *provider_config*.

    Every configured provider is reached through the OpenAI-compatible
    ``/chat/completions`` streaming endpoint at ``base_url``; providers whose
    native API differs are expected behind a compatible gateway.
    """
    from agent_relay.infrastructure.chat.openai_compatible import OpenAICompatibleProviderClient
    return OpenAICompatibleProviderClient(
        base_url=provider_config.base_url,
        model=provider_config.model,
        api_key=provider_config.api_key,
        timeout_s=provider_config.timeout_s,
        temperature=provider_config.temperature,
        max_tokens=provider_config.max_tokens,
    )
