"""LLM adapter layer - abstracts over model providers."""

from storefront.adapters.llm.base import AbstractLLMClient
from storefront.adapters.llm.factory import create_llm_client
from storefront.adapters.llm.openai_client import OpenAIClient

__all__ = [
    "AbstractLLMClient",
    "OpenAIClient",
    "create_llm_client",
]
