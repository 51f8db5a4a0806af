from typing import List, Optional

import httpx

from arbiter.logging_config import get_logger
from arbiter.services.llm.base import LLMProvider, LLMProviderError, LLMResponse

logger = get_logger("llm.openai")

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions over plain HTTP."""

    def __init__(self, api_key: str, default_model: str, base_url: str = OPENAI_CHAT_URL):
        self.api_key = api_key
        self.default_model = default_model
        self.base_url = base_url

    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        model = model or self.default_model
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_completion_tokens": max_tokens,
        }
        logger.debug(f"OpenAI request: model={model}, messages_count={len(messages)}")

        with httpx.Client(timeout=timeout_seconds if timeout_seconds is not None else 60.0) as client:
            response = client.post(
                self.base_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )

        if response.status_code != 200:
            logger.error(f"OpenAI error: {response.text}")
            raise LLMProviderError("openai", response.status_code, response.text)

        data = response.json()
        choices = data.get("choices") or []
        content = ""
        if choices:
            content = (choices[0].get("message") or {}).get("content") or ""

        return LLMResponse(content=content, model=data.get("model", model), usage=data.get("usage"))
