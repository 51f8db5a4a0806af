from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class OwnershipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    agent_id: UUID
    phone_number: str
    ownership: str
    taken_over_at: Optional[datetime] = None
    last_message_at: Optional[datetime] = None


class ResumeResponse(BaseModel):
    success: bool
    released: bool
    ownership: str


class SweepResponse(BaseModel):
    scanned: int
    released: int
    skipped: int
    failed: int
    items: list[dict]
