from typing import Any

from .base import CompletionClient
from .providers import GeminiCompletionClient, HTTPCompletionClient


def create_completion_client(provider: str, **config: Any) -> CompletionClient:
    """Create a completion client instance.

    This factory function hides the instantiation logic for different providers.

    Args:
        provider: Provider type ('gemini', 'rest', 'proxy')
        **config: Provider-specific configuration
            For Gemini (SDK):
                - api_key: str (required)
                - model: str (default: 'gemini-2.0-flash')
            For REST (direct generateContent call):
                - api_key: str (required)
                - model: str (default: 'gemini-2.0-flash')
                - base_url: str (default: public v1beta endpoint)
            For proxy:
                - url: str (required)
            All providers accept policy (BackoffPolicy) and sleep.

    Returns:
        Initialized completion client

    Raises:
        ValueError: If provider type is not supported
        TypeError: If required configuration is missing

    Examples:
        >>> client = create_completion_client("gemini", api_key="...")

        >>> client = create_completion_client(
        ...     "proxy",
        ...     url="http://localhost:3000/api/gemini"
        ... )
    """
    provider_lower = provider.lower()

    if provider_lower == "gemini":
        if "api_key" not in config:
            raise TypeError("Gemini provider requires 'api_key' in config")
        return GeminiCompletionClient(**config)

    if provider_lower == "rest":
        if "api_key" not in config:
            raise TypeError("REST provider requires 'api_key' in config")
        return HTTPCompletionClient.for_gemini(**config)

    if provider_lower == "proxy":
        if "url" not in config:
            raise TypeError("Proxy provider requires 'url' in config")
        return HTTPCompletionClient.for_proxy(**config)

    raise ValueError(
        f"Unsupported provider: {provider}. "
        f"Supported providers: 'gemini', 'rest', 'proxy'"
    )
