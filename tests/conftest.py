import os
import uuid
from datetime import datetime, timezone
from unittest.mock import Mock

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SWEEPER_ENABLED"] = "false"
os.environ.setdefault("EVOLUTION_API_URL", "http://evolution.test")
os.environ.setdefault("EVOLUTION_API_KEY", "test-evolution-key")

import pytest

from arbiter.database import Base, SessionLocal, engine
from arbiter.models import Agent, FAQEntry
from arbiter.services.faq_matcher import extract_keywords


@pytest.fixture
def db_session():
    """Mock database session."""
    return Mock()


@pytest.fixture
def db():
    """Real session on a fresh in-memory SQLite schema."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_agent(db):
    def _make_agent(**overrides):
        values = {
            "name": "Clínica Sorriso",
            "instance_name": f"instance-{uuid.uuid4().hex[:8]}",
            "status": "online",
            "ghost_mode": False,
            "created_at": datetime.now(timezone.utc),
        }
        values.update(overrides)
        agent = Agent(**values)
        db.add(agent)
        db.commit()
        return agent

    return _make_agent


@pytest.fixture
def agent(make_agent):
    return make_agent()


@pytest.fixture
def make_faq(db):
    counter = {"n": 0}

    def _make_faq(agent_id, question, answer, keywords=None, is_active=True, usage_count=0, created_at=None):
        # Distinct creation times keep candidate order stable.
        counter["n"] += 1
        faq = FAQEntry(
            agent_id=agent_id,
            question=question,
            answer=answer,
            keywords=extract_keywords(question) if keywords is None else keywords,
            is_active=is_active,
            usage_count=usage_count,
            created_at=created_at or datetime(2026, 1, 1, 12, 0, counter["n"], tzinfo=timezone.utc),
        )
        db.add(faq)
        db.commit()
        return faq

    return _make_faq

