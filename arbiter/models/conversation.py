import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from arbiter.database import Base


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("agent_id", "phone_number", name="uq_conversations_agent_phone"),
        CheckConstraint(
            "(ownership = 'human_held' AND taken_over_at IS NOT NULL)"
            " OR (ownership = 'automated' AND taken_over_at IS NULL)",
            name="ck_conversations_ownership_timestamp",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    agent_id = Column(Uuid, ForeignKey("agents.id"), nullable=False)
    phone_number = Column(Text, nullable=False)
    ownership = Column(Text, nullable=False, default="automated")  # automated, human_held
    taken_over_at = Column(DateTime(timezone=True))
    last_message_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True))

    agent = relationship("Agent", back_populates="conversations")
