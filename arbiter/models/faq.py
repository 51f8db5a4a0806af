import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Text, Uuid
from sqlalchemy.orm import relationship

from arbiter.database import Base


class FAQEntry(Base):
    __tablename__ = "agent_faqs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    agent_id = Column(Uuid, ForeignKey("agents.id"), nullable=False)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=False)
    keywords = Column(JSON, nullable=False, default=list)
    usage_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True))

    agent = relationship("Agent", back_populates="faqs")
