from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional


class LLMProviderError(Exception):
    def __init__(self, provider: str, status_code: Optional[int], detail: str):
        self.provider = provider
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{provider} error: {status_code} - {detail}")


@dataclass
class LLMResponse:
    content: str
    model: str
    usage: Optional[dict] = None


class LLMProvider(ABC):
    """Chat-completion backend used for generative replies."""

    @abstractmethod
    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        """Return the assistant message for ``messages``."""
