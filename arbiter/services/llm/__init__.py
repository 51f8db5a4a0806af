from arbiter.services.llm.base import LLMProvider, LLMProviderError, LLMResponse
from arbiter.services.llm.openai_provider import OpenAIProvider

__all__ = ["LLMProvider", "LLMProviderError", "LLMResponse", "OpenAIProvider"]
