from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from arbiter.logging_config import get_logger
from arbiter.models import FAQEntry, FaqUsageLog
from arbiter.services.faq_matcher import extract_keywords, normalize_keywords

logger = get_logger("faq_service")

DEFAULT_TOP_LIMIT = 10
DEFAULT_STATS_DAYS = 30


class FaqNotFound(Exception):
    def __init__(self, faq_id: UUID):
        self.faq_id = faq_id
        super().__init__(f"FAQ {faq_id} not found")


def _resolve_keywords(question: str, keywords: Optional[list[str]]) -> list[str]:
    """Explicit keywords win (even an empty list); otherwise extract from the question."""
    if keywords is None:
        return extract_keywords(question)
    return normalize_keywords(keywords)


def list_faqs(db: Session, agent_id: UUID) -> list[FAQEntry]:
    return (
        db.query(FAQEntry)
        .filter(FAQEntry.agent_id == agent_id)
        .order_by(FAQEntry.usage_count.desc(), FAQEntry.created_at.desc())
        .all()
    )


def get_faq(db: Session, agent_id: UUID, faq_id: UUID) -> FAQEntry:
    faq = db.query(FAQEntry).filter(FAQEntry.id == faq_id, FAQEntry.agent_id == agent_id).first()
    if faq is None:
        raise FaqNotFound(faq_id)
    return faq


def create_faq(
    db: Session,
    agent_id: UUID,
    question: str,
    answer: str,
    keywords: Optional[list[str]] = None,
) -> FAQEntry:
    now = datetime.now(timezone.utc)
    faq = FAQEntry(
        agent_id=agent_id,
        question=question,
        answer=answer,
        keywords=_resolve_keywords(question, keywords),
        usage_count=0,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(faq)
    db.flush()
    logger.info(
        "FAQ created",
        extra={"context": {"agent_id": str(agent_id), "faq_id": str(faq.id), "keywords": faq.keywords}},
    )
    return faq


def update_faq(
    db: Session,
    agent_id: UUID,
    faq_id: UUID,
    *,
    question: Optional[str] = None,
    answer: Optional[str] = None,
    keywords: Optional[list[str]] = None,
    is_active: Optional[bool] = None,
) -> FAQEntry:
    """Partial update. A new question without explicit keywords re-extracts them.

    ``usage_count`` is never touched here, so deactivating and reactivating
    keeps the accumulated history.
    """
    faq = get_faq(db, agent_id, faq_id)

    if question is not None:
        faq.question = question
    if answer is not None:
        faq.answer = answer
    if keywords is not None or question is not None:
        faq.keywords = _resolve_keywords(faq.question, keywords)
    if is_active is not None:
        faq.is_active = is_active

    faq.updated_at = datetime.now(timezone.utc)
    db.flush()
    return faq


def deactivate_faq(db: Session, agent_id: UUID, faq_id: UUID) -> FAQEntry:
    return update_faq(db, agent_id, faq_id, is_active=False)


def get_top_faqs(db: Session, agent_id: UUID, limit: int = DEFAULT_TOP_LIMIT) -> list[FAQEntry]:
    return (
        db.query(FAQEntry)
        .filter(FAQEntry.agent_id == agent_id, FAQEntry.is_active.is_(True))
        .order_by(FAQEntry.usage_count.desc(), FAQEntry.created_at, FAQEntry.id)
        .limit(limit)
        .all()
    )


def get_usage_over_time(
    db: Session, agent_id: UUID, days: int = DEFAULT_STATS_DAYS, now: Optional[datetime] = None
) -> list[dict]:
    """Daily usage counts for the last ``days`` days, newest first."""
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=days)
    day = func.date(FaqUsageLog.created_at)
    rows = (
        db.query(day.label("date"), func.count(FaqUsageLog.id).label("count"))
        .filter(FaqUsageLog.agent_id == agent_id, FaqUsageLog.created_at > since)
        .group_by(day)
        .order_by(day.desc())
        .all()
    )
    return [{"date": row.date, "count": int(row.count)} for row in rows]


def count_total_usage(db: Session, agent_id: UUID) -> int:
    return db.query(func.count(FaqUsageLog.id)).filter(FaqUsageLog.agent_id == agent_id).scalar() or 0


def get_faq_stats(
    db: Session,
    agent_id: UUID,
    limit: int = DEFAULT_TOP_LIMIT,
    days: int = DEFAULT_STATS_DAYS,
) -> dict:
    return {
        "top_faqs": get_top_faqs(db, agent_id, limit),
        "usage_over_time": get_usage_over_time(db, agent_id, days),
        "total_api_calls_saved": count_total_usage(db, agent_id),
    }
