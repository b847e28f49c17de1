"""Factory pattern for creating LLM client instances."""

from storefront.adapters.llm.base import AbstractLLMClient
from storefront.adapters.llm.openai_client import OpenAIClient
from storefront.core.config import settings
from storefront.core.errors import ValidationAppError

SUPPORTED_PROVIDERS = ("openai", "openai_compatible")


def create_llm_client() -> AbstractLLMClient:
    """Instantiate the configured LLM client.

    ``openai`` talks to the OpenAI API and needs ``LLM_API_KEY``.
    ``openai_compatible`` targets any gateway or local server speaking the
    same chat completions protocol and needs ``LLM_BASE_URL``; the key is
    optional there.

    Returns:
        AbstractLLMClient: Configured LLM client instance.

    Raises:
        ValidationAppError: If provider-specific requirements are not met.
    """
    llm = settings.llm
    provider = llm.provider.lower()

    if provider not in SUPPORTED_PROVIDERS:
        raise ValidationAppError(
            code="llm_unknown_provider",
            message=(
                f"Unknown LLM provider: '{provider}'. "
                f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
            ),
        )

    if provider == "openai" and not llm.api_key:
        raise ValidationAppError(
            code="llm_missing_api_key",
            message="OpenAI provider requires LLM_API_KEY environment variable",
        )
    if provider == "openai_compatible" and not llm.base_url:
        raise ValidationAppError(
            code="llm_missing_base_url",
            message="openai_compatible provider requires LLM_BASE_URL environment variable",
        )

    return OpenAIClient(
        # the SDK refuses an empty key even when the gateway ignores it
        api_key=llm.api_key or "not-needed",
        model=llm.model,
        base_url=llm.base_url,
        timeout_seconds=llm.timeout_seconds,
    )
