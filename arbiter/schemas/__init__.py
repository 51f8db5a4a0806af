from arbiter.schemas.conversation import OwnershipResponse, ResumeResponse, SweepResponse
from arbiter.schemas.faq import FaqCreate, FaqMatchRequest, FaqMatchResponse, FaqResponse, FaqStatsResponse, FaqUpdate
from arbiter.schemas.message import ManualSendRequest, ManualSendResponse, MessageResponse
from arbiter.schemas.webhook import WebhookRequest, WebhookResponse

__all__ = [
    "FaqCreate",
    "FaqMatchRequest",
    "FaqMatchResponse",
    "FaqResponse",
    "FaqStatsResponse",
    "FaqUpdate",
    "ManualSendRequest",
    "ManualSendResponse",
    "MessageResponse",
    "OwnershipResponse",
    "ResumeResponse",
    "SweepResponse",
    "WebhookRequest",
    "WebhookResponse",
]
