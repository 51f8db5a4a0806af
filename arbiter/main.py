import os

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from arbiter.config import settings
from arbiter.database import SessionLocal, get_db
from arbiter.logging_config import setup_logging
from arbiter.models import Conversation, FAQEntry, FaqUsageLog, Message
from arbiter.routers import admin, conversations, faq, messages, webhook
from arbiter.services.inactivity_service import InactivitySweeper
from arbiter.services.state_machine import ConversationOwnership

setup_logging()

app = FastAPI(
    title="WhatsApp Arbiter API",
    description="Decides whether the bot or a human answers each WhatsApp conversation",
    version="0.1.0",
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)
app.include_router(messages.router)
app.include_router(conversations.router)
app.include_router(faq.router)
app.include_router(admin.router)

sweeper = InactivitySweeper(SessionLocal)


def _is_sweeper_enabled() -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return settings.sweeper_enabled


@app.on_event("startup")
async def start_sweeper() -> None:
    if not _is_sweeper_enabled():
        return
    sweeper.start()


@app.on_event("shutdown")
async def stop_sweeper() -> None:
    await sweeper.stop()


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    conversations_count = db.query(Conversation).count()
    human_held_count = (
        db.query(Conversation).filter(Conversation.ownership == ConversationOwnership.HUMAN_HELD.value).count()
    )
    messages_count = db.query(Message).count()
    faqs_count = db.query(FAQEntry).count()
    faq_usage_count = db.query(FaqUsageLog).count()
    return {
        "status": "ok",
        "conversations": conversations_count,
        "human_held": human_held_count,
        "messages": messages_count,
        "faqs": faqs_count,
        "faq_usage": faq_usage_count,
    }
