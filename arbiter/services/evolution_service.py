import re
from typing import Optional

import httpx

from arbiter.config import settings
from arbiter.logging_config import get_logger

logger = get_logger("evolution_service")

_MANAGER_SUFFIX_RE = re.compile(r"/manager/?$")
WHATSAPP_JID_SUFFIX = "@s.whatsapp.net"


class SendFailed(Exception):
    def __init__(self, phone_number: str, reason: str = "gateway_error"):
        self.phone_number = phone_number
        self.reason = reason
        super().__init__(f"Failed to send message to {phone_number}: {reason}")


def phone_from_jid(remote_jid: str) -> str:
    return (remote_jid or "").replace(WHATSAPP_JID_SUFFIX, "")


def get_credentials(agent=None) -> tuple[Optional[str], Optional[str]]:
    """Per-agent gateway credentials, falling back to the global ones."""
    if agent is not None and agent.evolution_api_url and agent.evolution_api_key:
        api_url, api_key = agent.evolution_api_url, agent.evolution_api_key
    else:
        api_url, api_key = settings.evolution_api_url, settings.evolution_api_key

    if api_url:
        api_url = _MANAGER_SUFFIX_RE.sub("", api_url.rstrip())
    return api_url, api_key


def send_text(instance_name: str, phone_number: str, text: str, agent=None) -> bool:
    """Send a text message through the Evolution API. Never raises, never retries."""
    if not instance_name or not text:
        logger.warning(f"send_text: missing instance_name={instance_name!r} or text")
        return False

    api_url, api_key = get_credentials(agent)
    if not api_url or not api_key:
        logger.error("Evolution API credentials not configured")
        return False

    try:
        with httpx.Client(timeout=settings.evolution_timeout_seconds) as client:
            response = client.post(
                f"{api_url}/message/sendText/{instance_name}",
                headers={"Content-Type": "application/json", "apikey": api_key},
                json={"number": phone_number, "text": text},
            )
        logger.info(
            "Evolution response",
            extra={
                "context": {
                    "instance": instance_name,
                    "phone_number": phone_number,
                    "status": response.status_code,
                }
            },
        )
        return response.status_code in (200, 201)
    except Exception as e:
        logger.error(f"Error sending WhatsApp message: {e}")
        return False
