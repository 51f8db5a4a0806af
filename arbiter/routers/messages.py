from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from arbiter.database import get_db
from arbiter.schemas.message import ManualSendRequest, ManualSendResponse, MessageResponse
from arbiter.services.agent_service import get_agent
from arbiter.services.arbiter_service import send_manual_message
from arbiter.services.conversation_registry import RegistryUnavailable
from arbiter.services.evolution_service import SendFailed
from arbiter.services.state_machine import ConversationOwnership

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("/send", response_model=ManualSendResponse)
def send_message(request: ManualSendRequest, db: Session = Depends(get_db)):
    """Operator sends a message from the platform; the conversation becomes human held."""
    agent = get_agent(db, request.agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")
    if not agent.instance_name:
        raise HTTPException(status_code=400, detail="Agent has no WhatsApp instance")

    try:
        message = send_manual_message(db, agent, request.phone_number, request.content)
    except SendFailed as e:
        raise HTTPException(status_code=502, detail=str(e))
    except RegistryUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))

    return ManualSendResponse(
        success=True,
        message=MessageResponse.model_validate(message),
        ownership=ConversationOwnership.HUMAN_HELD.value,
    )
