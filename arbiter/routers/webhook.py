from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from arbiter.database import get_db
from arbiter.logging_config import get_logger
from arbiter.schemas.webhook import WebhookRequest, WebhookResponse
from arbiter.services.agent_service import get_online_agent_by_instance
from arbiter.services.arbiter_service import arbitrate_inbound, register_owner_echo
from arbiter.services.conversation_registry import RegistryUnavailable, touch_conversation
from arbiter.services.evolution_service import phone_from_jid
from arbiter.services.message_service import is_duplicate_delivery, save_message

logger = get_logger("webhook")

router = APIRouter()

UPSERT_EVENTS = {"messages.upsert", "MESSAGES_UPSERT"}


@router.post("/webhook/{instance_name}", response_model=WebhookResponse)
def handle_webhook(
    instance_name: str,
    payload: WebhookRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """Handle an Evolution API message event for one WhatsApp instance."""
    if payload.event and payload.event not in UPSERT_EVENTS:
        return WebhookResponse(status="ignored", reason="unsupported_event")

    agent = get_online_agent_by_instance(db, instance_name)
    if not agent:
        logger.info(f"No active agent found for instance: {instance_name}")
        return WebhookResponse(status="ignored", reason="no_agent")

    key = payload.data.key
    if is_duplicate_delivery(db, agent.id, key.id):
        logger.info(f"Duplicate webhook ignored for message id: {key.id}")
        return WebhookResponse(status="ignored", reason="duplicate")

    text = payload.data.text
    if not text:
        return WebhookResponse(status="ignored", reason="no_content")

    phone_number = phone_from_jid(key.remoteJid)

    try:
        if key.fromMe:
            # Operator answered from the phone: the bot steps aside.
            register_owner_echo(db, agent, phone_number, text, external_id=key.id)
            db.commit()
            return WebhookResponse(status="ok", reason="owner_message_stored", action="suppressed")

        save_message(db, agent.id, phone_number, "user", text, "received", external_id=key.id)
        touch_conversation(db, agent.id, phone_number)
        db.commit()
    except IntegrityError:
        # Concurrent redelivery of the same gateway message.
        db.rollback()
        return WebhookResponse(status="ignored", reason="duplicate")
    except RegistryUnavailable as e:
        db.rollback()
        logger.error(
            "Registry unavailable while storing inbound message",
            extra={"context": {"instance": instance_name, "phone_number": phone_number, "error": str(e.__cause__)}},
        )
        return WebhookResponse(status="ok", reason="registry_unavailable", action="suppressed")

    outcome = arbitrate_inbound(db, agent, phone_number, text, schedule=background_tasks.add_task)
    db.commit()

    return WebhookResponse(
        status="ok",
        reason=outcome.reason,
        action=outcome.action.value,
        sent=outcome.sent,
        faq_id=str(outcome.faq_id) if outcome.faq_id else None,
    )
