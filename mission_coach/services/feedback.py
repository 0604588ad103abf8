"""Conversation-data collection for later tuning.

When the user rates an assistant reply, a snapshot of the whole
conversation is stored next to the rating.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mission_coach.core.errors import PersistenceError
from mission_coach.models.conversation import ConversationFeedback

logger = logging.getLogger(__name__)


@dataclass
class FeedbackEntry:
    message_id: str
    type: str  # 'positive' | 'negative'
    message_content: str
    transcript_context: str
    timestamp: datetime = field(default_factory=datetime.utcnow)
    detailed_feedback: Optional[str] = None
    user_id: Optional[int] = None


@dataclass
class ConversationData:
    transcript: str
    conversation: List[dict]  # {role, content, timestamp, feedback?}
    upload_date: datetime
    transcript_title: str
    session_duration_ms: int
    last_feedback: FeedbackEntry
    session_id: Optional[str] = None


class FeedbackCollector:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def save_conversation_data(self, data: ConversationData) -> int:
        feedback = data.last_feedback
        row = ConversationFeedback(
            session_id=data.session_id,
            user_id=feedback.user_id,
            message_id=feedback.message_id,
            feedback_type=feedback.type,
            detail=feedback.detailed_feedback,
            message_content=feedback.message_content,
            transcript_context=feedback.transcript_context,
            transcript_title=data.transcript_title,
            session_duration_ms=data.session_duration_ms,
            conversation_json=json.dumps(data.conversation, default=str, ensure_ascii=False),
        )
        db = self._session_factory()
        try:
            db.add(row)
            db.commit()
            db.refresh(row)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error('Failed to save conversation feedback for %s: %s', feedback.message_id, exc)
            raise PersistenceError('save_conversation_data failed') from exc
        finally:
            db.close()

        logger.info('Saved %s feedback for message %s (%d turns)',
                    feedback.type, feedback.message_id, len(data.conversation))
        return row.id
