import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Text, Uuid

from arbiter.database import Base


class FaqUsageLog(Base):
    __tablename__ = "faq_usage_log"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    faq_id = Column(Uuid, ForeignKey("agent_faqs.id"), nullable=False)
    agent_id = Column(Uuid, ForeignKey("agents.id"), nullable=False)
    session_id = Column(Text)
    source = Column(Text, nullable=False, default="whatsapp")  # whatsapp, widget
    created_at = Column(DateTime(timezone=True), nullable=False)
