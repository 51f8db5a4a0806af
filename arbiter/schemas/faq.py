from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class FaqCreate(BaseModel):
    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)
    # None means "derive from the question"; [] is kept as an explicit choice.
    keywords: Optional[list[str]] = None


class FaqUpdate(BaseModel):
    question: Optional[str] = Field(default=None, min_length=1)
    answer: Optional[str] = Field(default=None, min_length=1)
    keywords: Optional[list[str]] = None
    is_active: Optional[bool] = None


class FaqResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    agent_id: UUID
    question: str
    answer: str
    keywords: list[str]
    usage_count: int
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


class DailyUsage(BaseModel):
    date: date
    count: int


class FaqStatsResponse(BaseModel):
    top_faqs: list[FaqResponse]
    usage_over_time: list[DailyUsage]
    total_api_calls_saved: int


class FaqMatchRequest(BaseModel):
    message: str


class FaqMatchResponse(BaseModel):
    matched: bool
    faq_id: Optional[UUID] = None
    question: Optional[str] = None
    answer: Optional[str] = None
    score: Optional[int] = None
    keywords: list[str] = []
