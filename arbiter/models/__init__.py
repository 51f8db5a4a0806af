from arbiter.models.agent import Agent
from arbiter.models.conversation import Conversation
from arbiter.models.faq import FAQEntry
from arbiter.models.faq_usage_log import FaqUsageLog
from arbiter.models.message import Message

__all__ = [
    "Agent",
    "Conversation",
    "FAQEntry",
    "FaqUsageLog",
    "Message",
]
