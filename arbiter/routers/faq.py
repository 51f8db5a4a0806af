from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from arbiter.database import get_db
from arbiter.schemas.faq import (
    FaqCreate,
    FaqMatchRequest,
    FaqMatchResponse,
    FaqResponse,
    FaqStatsResponse,
    FaqUpdate,
)
from arbiter.services.agent_service import get_agent
from arbiter.services.faq_matcher import extract_keywords, match_faq
from arbiter.services.faq_service import (
    FaqNotFound,
    create_faq,
    deactivate_faq,
    get_faq_stats,
    list_faqs,
    update_faq,
)

router = APIRouter(prefix="/faq", tags=["faq"])


def _require_agent(db: Session, agent_id: UUID):
    agent = get_agent(db, agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")
    return agent


@router.get("/{agent_id}", response_model=list[FaqResponse])
def get_faqs(agent_id: UUID, db: Session = Depends(get_db)):
    _require_agent(db, agent_id)
    return list_faqs(db, agent_id)


@router.get("/{agent_id}/stats", response_model=FaqStatsResponse)
def get_stats(
    agent_id: UUID,
    limit: int = Query(default=10, ge=1, le=100),
    days: int = Query(default=30, ge=1, le=365),
    db: Session = Depends(get_db),
):
    """Top FAQs, daily usage and how many generative calls were saved."""
    _require_agent(db, agent_id)
    return get_faq_stats(db, agent_id, limit=limit, days=days)


@router.post("/{agent_id}", response_model=FaqResponse, status_code=201)
def add_faq(agent_id: UUID, request: FaqCreate, db: Session = Depends(get_db)):
    _require_agent(db, agent_id)
    faq = create_faq(db, agent_id, request.question, request.answer, keywords=request.keywords)
    db.commit()
    return faq


@router.put("/{agent_id}/{faq_id}", response_model=FaqResponse)
def edit_faq(agent_id: UUID, faq_id: UUID, request: FaqUpdate, db: Session = Depends(get_db)):
    try:
        faq = update_faq(
            db,
            agent_id,
            faq_id,
            question=request.question,
            answer=request.answer,
            keywords=request.keywords,
            is_active=request.is_active,
        )
    except FaqNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    db.commit()
    return faq


@router.post("/{agent_id}/{faq_id}/deactivate", response_model=FaqResponse)
def disable_faq(agent_id: UUID, faq_id: UUID, db: Session = Depends(get_db)):
    try:
        faq = deactivate_faq(db, agent_id, faq_id)
    except FaqNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    db.commit()
    return faq


@router.post("/{agent_id}/match", response_model=FaqMatchResponse)
def preview_match(agent_id: UUID, request: FaqMatchRequest, db: Session = Depends(get_db)):
    """Dry run of the matcher; nothing is sent or counted."""
    _require_agent(db, agent_id)
    keywords = extract_keywords(request.message)
    match = match_faq(db, agent_id, request.message)
    if not match:
        return FaqMatchResponse(matched=False, keywords=keywords)
    return FaqMatchResponse(
        matched=True,
        faq_id=match.faq.id,
        question=match.faq.question,
        answer=match.faq.answer,
        score=match.score,
        keywords=keywords,
    )
