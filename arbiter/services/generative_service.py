"""Boundary to the generative-response collaborator.

The arbiter only needs ``generate_reply``; prompt building beyond the agent's
system prompt lives with the collaborator.
"""

from typing import Optional

from arbiter.config import settings
from arbiter.logging_config import get_logger
from arbiter.services.llm import LLMProvider, OpenAIProvider
from arbiter.services.result import Result

logger = get_logger("generative_service")

DEFAULT_SYSTEM_PROMPT = "Você é um assistente de atendimento via WhatsApp. Responda de forma breve e cordial."


def get_provider(agent) -> Optional[LLMProvider]:
    api_key = getattr(agent, "openai_api_key", None) or settings.openai_api_key
    if not api_key:
        return None
    model = getattr(agent, "openai_model", None) or settings.openai_model
    return OpenAIProvider(api_key=api_key, default_model=model)


def generate_reply(agent, phone_number: str, text: str, provider: Optional[LLMProvider] = None) -> Result[str]:
    """Ask the generative collaborator for a reply to ``text``."""
    provider = provider or get_provider(agent)
    if provider is None:
        return Result.failure("No LLM API key configured", "ai_not_configured")

    messages = [
        {"role": "system", "content": agent.prompt or DEFAULT_SYSTEM_PROMPT},
        {"role": "user", "content": text},
    ]
    try:
        response = provider.generate(messages, timeout_seconds=settings.generative_timeout_seconds)
    except Exception as e:
        logger.error(
            "Generative reply failed",
            extra={"context": {"agent_id": str(agent.id), "phone_number": phone_number, "error": str(e)}},
        )
        return Result.from_exception(e, "ai_error")

    reply = (response.content or "").strip()
    if not reply:
        return Result.failure("Empty reply from LLM", "ai_empty")
    return Result.success(reply)
