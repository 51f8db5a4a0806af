"""Decides who answers an inbound message and records human takeovers.

Inbound flow::

    ghost mode? -> operating hours (outside => out-of-hours notice)
                -> registry (human held / unreadable => suppress)
                -> FAQ match => canned answer, usage recorded off the reply path
                -> otherwise generative collaborator

Manual sends mark the takeover and persist the owner message in one committed
transaction before the gateway call; a failed send reverts both.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from arbiter.logging_config import conversation_logger, get_logger
from arbiter.models import Agent, Conversation, Message
from arbiter.services.conversation_registry import (
    RegistryUnavailable,
    ensure_utc,
    get_conversation,
    is_automated_control,
    mark_human_takeover,
    revert_takeover,
)
from arbiter.services.evolution_service import SendFailed, send_text
from arbiter.services.faq_matcher import match_faq
from arbiter.services.generative_service import generate_reply
from arbiter.services.message_service import latest_owner_message_at, save_message
from arbiter.services.operating_hours import is_within_operating_hours, out_of_hours_message
from arbiter.services.state_machine import ConversationOwnership
from arbiter.services.usage_ledger import record_usage_in_background

logger = get_logger("arbiter_service")


class ReplyAction(str, Enum):
    SUPPRESSED = "suppressed"
    FAQ = "faq"
    GENERATIVE = "generative"


@dataclass
class ArbitrationOutcome:
    action: ReplyAction
    reason: str
    reply: Optional[str] = None
    faq_id: Optional[UUID] = None
    score: Optional[int] = None
    sent: bool = False


def run_now(func: Callable[..., Any], *args, **kwargs) -> None:
    func(*args, **kwargs)


def _latest(*stamps: Optional[datetime]) -> Optional[datetime]:
    present = [ensure_utc(stamp) for stamp in stamps if stamp is not None]
    return max(present) if present else None


def _suppression_reason(db: Session, agent: Agent, phone_number: str, log) -> Optional[str]:
    """None when the bot owns the conversation, otherwise why it must stay silent."""
    try:
        automated = is_automated_control(db, agent.id, phone_number)
    except RegistryUnavailable as e:
        db.rollback()
        log.error(
            "Registry unavailable, treating conversation as human held",
            context={"error": str(e.__cause__)},
        )
        return "registry_unavailable"
    return None if automated else "human_held"


def _dispatch(db: Session, agent: Agent, phone_number: str, text: str, faq_id: Optional[UUID] = None) -> bool:
    """Send, then record the reply. A storage failure here does not undo a delivered reply."""
    sent = send_text(agent.instance_name, phone_number, text, agent=agent)
    try:
        save_message(db, agent.id, phone_number, "agent", text, "sent" if sent else "failed", faq_id=faq_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            "Failed to store automated reply",
            extra={
                "context": {
                    "agent_id": str(agent.id),
                    "phone_number": phone_number,
                    "sent": sent,
                    "error": str(e),
                }
            },
        )
    return sent


def arbitrate_inbound(
    db: Session,
    agent: Agent,
    phone_number: str,
    text: str,
    *,
    schedule: Callable[..., Any] = run_now,
    source: str = "whatsapp",
    now: Optional[datetime] = None,
) -> ArbitrationOutcome:
    """Handle one inbound user message.

    ``schedule`` runs the usage recording after the reply went out; routers
    pass ``BackgroundTasks.add_task``.
    """
    log = conversation_logger(logger, agent.id, phone_number)

    if agent.ghost_mode:
        log.info("Ghost mode, automated reply suppressed")
        return ArbitrationOutcome(ReplyAction.SUPPRESSED, "ghost_mode")

    if not is_within_operating_hours(agent, now):
        notice = out_of_hours_message(agent)
        sent = _dispatch(db, agent, phone_number, notice)
        log.info("Outside operating hours, notice sent instead of a reply", context={"sent": sent})
        return ArbitrationOutcome(ReplyAction.SUPPRESSED, "out_of_hours", reply=notice, sent=sent)

    reason = _suppression_reason(db, agent, phone_number, log)
    if reason:
        log.info("Automated reply suppressed", context={"reason": reason})
        return ArbitrationOutcome(ReplyAction.SUPPRESSED, reason)

    match = match_faq(db, agent.id, text)
    if match:
        faq_id, answer = match.faq.id, match.faq.answer
        sent = _dispatch(db, agent, phone_number, answer, faq_id=faq_id)
        if sent:
            schedule(record_usage_in_background, faq_id, agent.id, session_id=phone_number, source=source)
        else:
            log.warning("FAQ reply not delivered", context={"faq_id": str(faq_id)})
        return ArbitrationOutcome(ReplyAction.FAQ, "faq_match", reply=answer, faq_id=faq_id, score=match.score, sent=sent)

    result = generate_reply(agent, phone_number, text)
    if not result.ok:
        log.warning("No generative reply", context={"error_code": result.error_code, "error": result.error})
        return ArbitrationOutcome(ReplyAction.GENERATIVE, result.error_code or "ai_error")

    # The generative call is slow; an operator may have stepped in meanwhile.
    reason = _suppression_reason(db, agent, phone_number, log)
    if reason:
        reason = "human_took_over" if reason == "human_held" else reason
        log.info("Generated reply dropped", context={"reason": reason})
        return ArbitrationOutcome(ReplyAction.SUPPRESSED, reason, reply=result.value)

    sent = _dispatch(db, agent, phone_number, result.value)
    if not sent:
        log.warning("Generated reply not delivered")
    return ArbitrationOutcome(ReplyAction.GENERATIVE, "generated", reply=result.value, sent=sent)


def register_owner_echo(
    db: Session,
    agent: Agent,
    phone_number: str,
    text: str,
    external_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Conversation:
    """The operator typed on the phone; the gateway echoes it back with fromMe.

    Already delivered, so takeover and message are stored together and
    nothing is sent. The caller commits.
    """
    now = now or datetime.now(timezone.utc)
    conversation = mark_human_takeover(db, agent.id, phone_number, now)
    save_message(
        db,
        agent.id,
        phone_number,
        "owner",
        text,
        "sent",
        is_from_owner=True,
        external_id=external_id,
        created_at=now,
    )
    return conversation


def send_manual_message(
    db: Session,
    agent: Agent,
    phone_number: str,
    text: str,
    now: Optional[datetime] = None,
) -> Message:
    """Operator send from the platform.

    Raises SendFailed when the gateway rejects the message; the takeover made
    for it is reverted so no takeover without a delivered message remains.
    """
    now = now or datetime.now(timezone.utc)
    log = conversation_logger(logger, agent.id, phone_number)

    if not agent.instance_name:
        raise SendFailed(phone_number, "no_instance")

    try:
        # Locked so a concurrent send on the same conversation reads our committed takeover.
        previous = get_conversation(db, agent.id, phone_number, for_update=True)
        previous_taken_over_at = None
        if previous is not None and previous.ownership == ConversationOwnership.HUMAN_HELD.value:
            previous_taken_over_at = previous.taken_over_at

        mark_human_takeover(db, agent.id, phone_number, now)
        message = save_message(
            db, agent.id, phone_number, "owner", text, "pending", is_from_owner=True, created_at=now
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise RegistryUnavailable("send_manual_message", agent.id, phone_number) from e
    except RegistryUnavailable:
        db.rollback()
        raise

    if send_text(agent.instance_name, phone_number, text, agent=agent):
        message.status = "sent"
        db.commit()
        log.info("Manual message sent")
        return message

    try:
        restore_to = _latest(
            previous_taken_over_at,
            latest_owner_message_at(db, agent.id, phone_number, exclude_id=message.id),
        )
        revert_takeover(db, agent.id, phone_number, applied_at=now, previous_taken_over_at=restore_to)
        message.status = "failed"
        db.commit()
    except (RegistryUnavailable, SQLAlchemyError) as e:
        db.rollback()
        log.error("Failed to revert takeover after send failure", context={"error": str(e)})

    log.warning("Manual message not delivered, takeover reverted")
    raise SendFailed(phone_number)
