import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Text, UniqueConstraint, Uuid

from arbiter.database import Base


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (UniqueConstraint("agent_id", "external_id", name="uq_messages_agent_external"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    agent_id = Column(Uuid, ForeignKey("agents.id"), nullable=False)
    phone_number = Column(Text, nullable=False)
    sender = Column(Text, nullable=False)  # user, agent, owner
    content = Column(Text, nullable=False)
    status = Column(Text, nullable=False)  # received, pending, sent, failed
    is_from_owner = Column(Boolean, nullable=False, default=False)
    faq_id = Column(Uuid, ForeignKey("agent_faqs.id"))
    external_id = Column(Text)  # gateway message id, used for webhook de-duplication
    created_at = Column(DateTime(timezone=True), nullable=False)
