from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from arbiter.database import get_db
from arbiter.schemas.conversation import OwnershipResponse, ResumeResponse
from arbiter.schemas.message import MessageResponse
from arbiter.services.agent_service import get_agent
from arbiter.services.conversation_registry import (
    RegistryUnavailable,
    get_conversation,
    list_conversations,
    release_to_automated,
)
from arbiter.services.message_service import list_conversation_messages
from arbiter.services.state_machine import ConversationOwnership

router = APIRouter(prefix="/conversations", tags=["conversations"])


def _require_agent(db: Session, agent_id: UUID):
    agent = get_agent(db, agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")
    return agent


@router.get("/{agent_id}", response_model=list[OwnershipResponse])
def get_conversations(agent_id: UUID, db: Session = Depends(get_db)):
    _require_agent(db, agent_id)
    try:
        return list_conversations(db, agent_id)
    except RegistryUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/{agent_id}/{phone_number}", response_model=OwnershipResponse)
def get_conversation_ownership(agent_id: UUID, phone_number: str, db: Session = Depends(get_db)):
    """Unknown conversations are reported as automated."""
    _require_agent(db, agent_id)
    try:
        conversation = get_conversation(db, agent_id, phone_number)
    except RegistryUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))

    if conversation is None:
        return OwnershipResponse(
            agent_id=agent_id,
            phone_number=phone_number,
            ownership=ConversationOwnership.AUTOMATED.value,
        )
    return conversation


@router.get("/{agent_id}/{phone_number}/messages", response_model=list[MessageResponse])
def get_conversation_messages(agent_id: UUID, phone_number: str, limit: int = 50, db: Session = Depends(get_db)):
    _require_agent(db, agent_id)
    return list_conversation_messages(db, agent_id, phone_number, limit=min(max(limit, 1), 200))


@router.post("/{agent_id}/{phone_number}/resume", response_model=ResumeResponse)
def resume_automation(agent_id: UUID, phone_number: str, db: Session = Depends(get_db)):
    """Operator hands the conversation back to the bot."""
    _require_agent(db, agent_id)
    try:
        released = release_to_automated(db, agent_id, phone_number)
        db.commit()
    except RegistryUnavailable as e:
        db.rollback()
        raise HTTPException(status_code=503, detail=str(e))

    return ResumeResponse(success=True, released=released, ownership=ConversationOwnership.AUTOMATED.value)
