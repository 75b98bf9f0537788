"""AI Providers - factory for provider instances."""
import logging
from typing import List

from config import RuntimeConfig, normalize_provider_name
from errors import NotFoundError, ProviderAuthError
from providers.base import ProviderClient

logger = logging.getLogger(__name__)


def get_provider(provider_type: str, config: RuntimeConfig) -> ProviderClient:
    """Create a provider instance from the runtime configuration.

    Args:
        provider_type: "OpenAI" | "Perplexity" | "Gemini" (case-insensitive)
        config: Runtime configuration holding keys, models and timeouts

    Raises:
        ProviderAuthError: the provider's API key is not configured
        NotFoundError: unknown provider type
    """
    name = normalize_provider_name(provider_type)
    common = {
        "api_key": config.api_key_for(name),
        "model": config.model_for(name),
        "timeout": config.timeout_for(name),
        "temperature": config.temperature,
        "top_p": config.top_p,
        "max_output_tokens": config.max_output_tokens,
    }
    if name == "OpenAI":
        from providers.openai_compat import OpenAIProvider
        return OpenAIProvider(**common)
    elif name == "Perplexity":
        from providers.perplexity import PerplexityProvider
        return PerplexityProvider(base_url=config.perplexity_base_url, **common)
    elif name == "Gemini":
        from providers.gemini import GeminiProvider
        return GeminiProvider(top_k=config.top_k, **common)
    else:
        raise NotFoundError(
            "Unknown provider type: " + provider_type,
            resource_type="provider",
            resource_id=provider_type,
        )


def build_provider_chain(config: RuntimeConfig) -> List[ProviderClient]:
    """Build providers in the configured fallback order.

    Providers without credentials are logged and left out of the chain.
    """
    chain = []
    for name in config.provider_order_list():
        try:
            chain.append(get_provider(name, config))
        except ProviderAuthError as e:
            logger.error(f"{e.code.value}: {name} omitted from provider chain ({e.message})")
    if not chain:
        logger.warning("No AI providers configured - every answer will be degraded")
    return chain


__all__ = ["ProviderClient", "get_provider", "build_provider_chain"]
