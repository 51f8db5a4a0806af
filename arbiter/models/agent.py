import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, Text, Time, Uuid
from sqlalchemy.orm import relationship

from arbiter.database import Base


class Agent(Base):
    __tablename__ = "agents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    instance_name = Column(Text, unique=True)  # Evolution instance
    status = Column(Text, nullable=False, default="offline")  # online, offline
    prompt = Column(Text)
    ghost_mode = Column(Boolean, nullable=False, default=False)
    takeover_timeout_minutes = Column(Integer)  # NULL -> settings.takeover_timeout_minutes
    operating_hours_enabled = Column(Boolean, nullable=False, default=False)
    operating_hours_start = Column(Time)  # NULL -> 09:00
    operating_hours_end = Column(Time)  # NULL -> 18:00
    operating_hours_timezone = Column(Text)  # IANA name, NULL -> America/Sao_Paulo
    out_of_hours_message = Column(Text)
    openai_api_key = Column(Text)
    openai_model = Column(Text)
    evolution_api_url = Column(Text)
    evolution_api_key = Column(Text)
    created_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True))

    conversations = relationship("Conversation", back_populates="agent")
    faqs = relationship("FAQEntry", back_populates="agent")
