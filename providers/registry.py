"""
Uniform entry point over all providers.

    invoke(provider_id, prompt_or_url, params) -> normalized dict

`params` is a ProviderSettings for text providers and a PageSpeedSettings for
the metrics provider. The credential check happens before any client is
built, so an unconfigured provider never touches the network.
"""

import logging

from analysis.errors import NotConfigured, ProviderError
from providers.base import DEFAULT_TIMEOUT, MetricsProvider, TextProvider
from providers.chatgpt import ChatGPTProvider
from providers.claude import ClaudeProvider
from providers.gemini import GeminiProvider
from providers.pagespeed import PageSpeedProvider

logger = logging.getLogger(__name__)

TEXT_PROVIDERS = {
    "gemini":  GeminiProvider,
    "claude":  ClaudeProvider,
    "chatgpt": ChatGPTProvider,
}


def build_provider(provider_id: str, params, timeout: float = DEFAULT_TIMEOUT):
    if provider_id in TEXT_PROVIDERS:
        return TEXT_PROVIDERS[provider_id](
            api_key=params.api_key,
            model=params.model,
            max_tokens=params.max_tokens,
            temperature=params.temperature,
            timeout=timeout,
        )
    if provider_id == PageSpeedProvider.provider_id:
        return PageSpeedProvider(
            api_key=params.api_key,
            timeout=timeout,
            strategies=params.strategies,
        )
    raise ProviderError(provider_id, "Unknown provider")


def invoke(provider_id: str, prompt_or_url: str, params, timeout: float = DEFAULT_TIMEOUT) -> dict:
    if not params.api_key:
        raise NotConfigured(provider_id, f"Credential {params.api_key_env} is not set")

    provider = build_provider(provider_id, params, timeout=timeout)
    if isinstance(provider, TextProvider):
        return provider.generate_text(prompt_or_url)
    if isinstance(provider, MetricsProvider):
        return provider.fetch_metrics(prompt_or_url)
    raise ProviderError(provider_id, "Provider has no known capability")
