from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ManualSendRequest(BaseModel):
    agent_id: UUID
    phone_number: str = Field(min_length=1)
    content: str = Field(min_length=1)


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    agent_id: UUID
    phone_number: str
    sender: str
    content: str
    status: str
    is_from_owner: bool
    faq_id: Optional[UUID] = None
    created_at: datetime


class ManualSendResponse(BaseModel):
    success: bool
    message: MessageResponse
    ownership: str
