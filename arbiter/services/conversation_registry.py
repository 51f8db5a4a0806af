"""Authoritative per-conversation ownership state.

Every mutation is a single-row conditional statement so concurrent webhook
handlers, manual sends and the inactivity sweeper stay consistent without an
application-level lock:

* a takeover upsert never moves ``taken_over_at`` backwards;
* a release can be conditioned on the ``taken_over_at`` the caller observed.

Functions execute inside the caller's transaction and never commit.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import case, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from arbiter.logging_config import get_logger
from arbiter.models import Agent, Conversation
from arbiter.services.state_machine import ConversationOwnership, release, take_over

logger = get_logger("conversation_registry")

conversations = Conversation.__table__


class RegistryUnavailable(Exception):
    def __init__(self, operation: str, agent_id, phone_number: Optional[str] = None):
        self.operation = operation
        self.agent_id = agent_id
        self.phone_number = phone_number
        super().__init__(f"Conversation registry unavailable during {operation}")


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands timestamps back naive; everything stored is UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise NotImplementedError(f"Upsert not supported for dialect {dialect}")


def _conversation_key(agent_id: UUID, phone_number: str):
    return (conversations.c.agent_id == agent_id, conversations.c.phone_number == phone_number)


def get_conversation(
    db: Session, agent_id: UUID, phone_number: str, for_update: bool = False
) -> Optional[Conversation]:
    """``for_update`` locks the row until the caller commits (no-op on SQLite)."""
    query = (
        db.query(Conversation)
        .filter(Conversation.agent_id == agent_id, Conversation.phone_number == phone_number)
        .populate_existing()
    )
    if for_update:
        query = query.with_for_update()
    try:
        return query.first()
    except SQLAlchemyError as e:
        raise RegistryUnavailable("get_conversation", agent_id, phone_number) from e


def touch_conversation(
    db: Session, agent_id: UUID, phone_number: str, now: Optional[datetime] = None
) -> Conversation:
    """Create the conversation on first contact; never changes ownership."""
    now = now or datetime.now(timezone.utc)
    insert = _dialect_insert(db)
    stmt = insert(conversations).values(
        id=uuid.uuid4(),
        agent_id=agent_id,
        phone_number=phone_number,
        ownership=ConversationOwnership.AUTOMATED.value,
        taken_over_at=None,
        last_message_at=now,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["agent_id", "phone_number"],
        set_={"last_message_at": stmt.excluded.last_message_at},
    )
    try:
        db.execute(stmt)
    except SQLAlchemyError as e:
        raise RegistryUnavailable("touch_conversation", agent_id, phone_number) from e
    return get_conversation(db, agent_id, phone_number)


def mark_human_takeover(
    db: Session, agent_id: UUID, phone_number: str, now: Optional[datetime] = None
) -> Conversation:
    """Idempotent upsert to HUMAN_HELD with ``taken_over_at = max(current, now)``."""
    now = now or datetime.now(timezone.utc)
    target = take_over(ConversationOwnership.AUTOMATED)
    insert = _dialect_insert(db)
    stmt = insert(conversations).values(
        id=uuid.uuid4(),
        agent_id=agent_id,
        phone_number=phone_number,
        ownership=target.value,
        taken_over_at=now,
        last_message_at=now,
        created_at=now,
        updated_at=now,
    )
    current = conversations.c.taken_over_at
    stmt = stmt.on_conflict_do_update(
        index_elements=["agent_id", "phone_number"],
        set_={
            "ownership": target.value,
            "taken_over_at": case(
                (current.is_(None), stmt.excluded.taken_over_at),
                (current < stmt.excluded.taken_over_at, stmt.excluded.taken_over_at),
                else_=current,
            ),
            "last_message_at": stmt.excluded.last_message_at,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    try:
        db.execute(stmt)
    except SQLAlchemyError as e:
        raise RegistryUnavailable("mark_human_takeover", agent_id, phone_number) from e

    conversation = get_conversation(db, agent_id, phone_number)
    logger.info(
        "Human takeover marked",
        extra={
            "context": {
                "agent_id": str(agent_id),
                "phone_number": phone_number,
                "taken_over_at": conversation.taken_over_at.isoformat() if conversation else None,
            }
        },
    )
    return conversation


def get_ownership(db: Session, agent_id: UUID, phone_number: str) -> ConversationOwnership:
    """Ownership of a conversation; absence of a record means AUTOMATED."""
    try:
        row = db.execute(select(conversations.c.ownership).where(*_conversation_key(agent_id, phone_number))).first()
    except SQLAlchemyError as e:
        raise RegistryUnavailable("get_ownership", agent_id, phone_number) from e

    if row is None:
        return ConversationOwnership.AUTOMATED
    return ConversationOwnership(row.ownership)


def is_automated_control(db: Session, agent_id: UUID, phone_number: str) -> bool:
    return get_ownership(db, agent_id, phone_number) == ConversationOwnership.AUTOMATED


def release_to_automated(
    db: Session,
    agent_id: UUID,
    phone_number: str,
    expected_taken_over_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> bool:
    """Hand the conversation back to the bot.

    With ``expected_taken_over_at`` the update only applies if the row still
    carries that timestamp, so a manual send that refreshed the takeover after
    the caller's read wins. Returns True if a row was released.
    """
    now = now or datetime.now(timezone.utc)
    target = release(ConversationOwnership.HUMAN_HELD)

    conditions = [
        *_conversation_key(agent_id, phone_number),
        conversations.c.ownership == ConversationOwnership.HUMAN_HELD.value,
    ]
    if expected_taken_over_at is not None:
        conditions.append(conversations.c.taken_over_at == expected_taken_over_at)

    stmt = update(conversations).where(*conditions).values(ownership=target.value, taken_over_at=None, updated_at=now)
    try:
        result = db.execute(stmt)
    except SQLAlchemyError as e:
        raise RegistryUnavailable("release_to_automated", agent_id, phone_number) from e

    released = result.rowcount == 1
    if released:
        logger.info(
            "Conversation released to automated control",
            extra={"context": {"agent_id": str(agent_id), "phone_number": phone_number}},
        )
    return released


def revert_takeover(
    db: Session,
    agent_id: UUID,
    phone_number: str,
    applied_at: datetime,
    previous_taken_over_at: Optional[datetime],
) -> bool:
    """Undo a takeover whose message could not be delivered.

    Only applies while ``taken_over_at`` is still ``applied_at``; a later
    takeover from another send is left untouched.
    """
    if previous_taken_over_at is None:
        return release_to_automated(db, agent_id, phone_number, expected_taken_over_at=applied_at)

    stmt = (
        update(conversations)
        .where(
            *_conversation_key(agent_id, phone_number),
            conversations.c.ownership == ConversationOwnership.HUMAN_HELD.value,
            conversations.c.taken_over_at == applied_at,
        )
        .values(taken_over_at=previous_taken_over_at, updated_at=datetime.now(timezone.utc))
    )
    try:
        result = db.execute(stmt)
    except SQLAlchemyError as e:
        raise RegistryUnavailable("revert_takeover", agent_id, phone_number) from e
    return result.rowcount == 1


def list_conversations(db: Session, agent_id: UUID) -> list[Conversation]:
    try:
        return (
            db.query(Conversation)
            .filter(Conversation.agent_id == agent_id)
            .order_by(Conversation.last_message_at.desc(), Conversation.id)
            .populate_existing()
            .all()
        )
    except SQLAlchemyError as e:
        raise RegistryUnavailable("list_conversations", agent_id) from e


def find_human_held(db: Session) -> list[tuple[Conversation, Optional[int]]]:
    """All HUMAN_HELD conversations with their agent's timeout override."""
    try:
        rows = (
            db.query(Conversation, Agent.takeover_timeout_minutes)
            .join(Agent, Agent.id == Conversation.agent_id)
            .filter(Conversation.ownership == ConversationOwnership.HUMAN_HELD.value)
            .populate_existing()
            .all()
        )
    except SQLAlchemyError as e:
        raise RegistryUnavailable("find_human_held", None) from e
    return [(conversation, timeout) for conversation, timeout in rows]
