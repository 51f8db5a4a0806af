from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from arbiter.models import Agent

AGENT_STATUS_ONLINE = "online"


def get_agent(db: Session, agent_id: UUID) -> Optional[Agent]:
    return db.query(Agent).filter(Agent.id == agent_id).first()


def get_online_agent_by_instance(db: Session, instance_name: str) -> Optional[Agent]:
    """Webhooks for offline agents are ignored."""
    return (
        db.query(Agent)
        .filter(Agent.instance_name == instance_name, Agent.status == AGENT_STATUS_ONLINE)
        .first()
    )
