from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from arbiter.models import Message


def save_message(
    db: Session,
    agent_id: UUID,
    phone_number: str,
    sender: str,
    content: str,
    status: str,
    *,
    is_from_owner: bool = False,
    faq_id: Optional[UUID] = None,
    external_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Message:
    """Save message to database."""
    message = Message(
        agent_id=agent_id,
        phone_number=phone_number,
        sender=sender,
        content=content,
        status=status,
        is_from_owner=is_from_owner,
        faq_id=faq_id,
        external_id=external_id,
        created_at=created_at or datetime.now(timezone.utc),
    )
    db.add(message)
    db.flush()
    return message


def is_duplicate_delivery(db: Session, agent_id: UUID, external_id: Optional[str]) -> bool:
    """Gateways redeliver webhooks; the gateway message id identifies repeats."""
    if not external_id:
        return False
    return (
        db.query(Message.id).filter(Message.agent_id == agent_id, Message.external_id == external_id).first()
        is not None
    )


LIVE_OWNER_STATUSES = ("pending", "sent")


def latest_owner_message_at(
    db: Session, agent_id: UUID, phone_number: str, exclude_id: Optional[UUID] = None
) -> Optional[datetime]:
    """Creation time of the newest owner message that was delivered or is still being delivered.

    Each such message carries the timestamp of the takeover it applied.
    """
    query = db.query(func.max(Message.created_at)).filter(
        Message.agent_id == agent_id,
        Message.phone_number == phone_number,
        Message.is_from_owner.is_(True),
        Message.status.in_(LIVE_OWNER_STATUSES),
    )
    if exclude_id is not None:
        query = query.filter(Message.id != exclude_id)
    return query.scalar()


def list_conversation_messages(db: Session, agent_id: UUID, phone_number: str, limit: int = 50) -> list[Message]:
    return (
        db.query(Message)
        .filter(Message.agent_id == agent_id, Message.phone_number == phone_number)
        .order_by(Message.created_at.desc())
        .limit(limit)
        .all()
    )
