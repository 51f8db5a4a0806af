"""Best-effort accounting of FAQ short-circuit hits."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from arbiter.database import SessionLocal
from arbiter.logging_config import get_logger
from arbiter.models import FAQEntry, FaqUsageLog
from arbiter.services.result import Result

logger = get_logger("usage_ledger")

faqs = FAQEntry.__table__


class UsageRecordFailed(Exception):
    def __init__(self, step: str, faq_id):
        self.step = step
        self.faq_id = faq_id
        super().__init__(f"FAQ usage {step} failed for {faq_id}")


def _increment_counter(db: Session, faq_id: UUID, now: datetime) -> bool:
    # Inactive entries keep their count frozen.
    stmt = (
        update(faqs)
        .where(faqs.c.id == faq_id, faqs.c.is_active.is_(True))
        .values(usage_count=faqs.c.usage_count + 1, updated_at=now)
    )
    try:
        result = db.execute(stmt)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise UsageRecordFailed("increment", faq_id) from e
    return result.rowcount == 1


def _append_log(
    db: Session, faq_id: UUID, agent_id: UUID, session_id: Optional[str], source: str, now: datetime
) -> None:
    try:
        db.add(FaqUsageLog(faq_id=faq_id, agent_id=agent_id, session_id=session_id, source=source, created_at=now))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise UsageRecordFailed("log", faq_id) from e


def record_usage(
    db: Session,
    faq_id: UUID,
    agent_id: UUID,
    session_id: Optional[str] = None,
    source: str = "whatsapp",
) -> Result[dict]:
    """Increment the FAQ counter and append a usage log row.

    Both steps run and commit independently; failures are logged and
    swallowed so accounting never affects the reply path.
    """
    now = datetime.now(timezone.utc)
    outcome = {"incremented": False, "logged": False}
    errors = []

    try:
        outcome["incremented"] = _increment_counter(db, faq_id, now)
    except UsageRecordFailed as e:
        errors.append(e)

    try:
        _append_log(db, faq_id, agent_id, session_id, source, now)
        outcome["logged"] = True
    except UsageRecordFailed as e:
        errors.append(e)

    for error in errors:
        logger.error(
            str(error),
            extra={
                "context": {
                    "faq_id": str(faq_id),
                    "agent_id": str(agent_id),
                    "step": error.step,
                    "error": str(error.__cause__),
                }
            },
        )

    if errors:
        return Result.failure("; ".join(str(e) for e in errors), "usage_record_failed")
    return Result.success(outcome)


def record_usage_in_background(
    faq_id: UUID,
    agent_id: UUID,
    session_id: Optional[str] = None,
    source: str = "whatsapp",
) -> Result[dict]:
    """Entry point for background tasks: owns its session."""
    db = SessionLocal()
    try:
        return record_usage(db, faq_id, agent_id, session_id=session_id, source=source)
    except Exception as e:
        logger.error(
            "FAQ usage recording crashed",
            extra={"context": {"faq_id": str(faq_id), "error": str(e)}},
            exc_info=True,
        )
        return Result.from_exception(e, "usage_record_failed")
    finally:
        db.close()
