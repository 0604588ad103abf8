from functools import lru_cache
from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from mission_coach.core.config import settings
from mission_coach.db.session import SessionLocal
from mission_coach.services.ai_coach.client import AIResponseClient
from mission_coach.services.ai_coach.factory import build_ai_client
from mission_coach.services.chat_history import ChatHistoryStore
from mission_coach.services.coaching.registry import SessionRegistry
from mission_coach.services.conversations import SqlConversationStore
from mission_coach.services.feedback import FeedbackCollector


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_conversation_store(db: Session = Depends(get_db)) -> SqlConversationStore:
    return SqlConversationStore(db)


@lru_cache(maxsize=1)
def get_ai_client() -> AIResponseClient:
    # One client per process so the rate limiter is shared by every session
    return build_ai_client(settings)


@lru_cache(maxsize=1)
def get_session_registry() -> SessionRegistry:
    return SessionRegistry()


def get_history_store() -> ChatHistoryStore:
    return ChatHistoryStore(settings.CHAT_HISTORY_PATH)


def get_feedback_collector() -> FeedbackCollector:
    return FeedbackCollector(SessionLocal)
