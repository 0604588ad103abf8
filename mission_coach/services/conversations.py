"""SQL-backed conversation store.

Backs the `/api/db` API: save, list, fetch, rename, toggle favourite and
delete conversations.  It is independent of the local JSON history in
`chat_history.py`; sessions are not mirrored between the two.

Every write runs in one transaction; SQLAlchemy failures are rolled
back, logged and re-raised as PersistenceError.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Optional, Protocol, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from mission_coach.core.errors import PersistenceError
from mission_coach.models.conversation import (
    Conversation,
    ConversationMessage,
    ConversationTranscript,
)
from mission_coach.schemas.conversations import (
    ConversationDetail,
    ConversationSummary,
    MessageIn,
    TranscriptIn,
)

logger = logging.getLogger(__name__)


class ConversationStore(Protocol):
    def save_conversation(
        self,
        user_id: int,
        title: str,
        messages: Sequence[MessageIn],
        transcript: TranscriptIn,
        is_favorite: bool = False,
    ) -> int: ...

    def get_conversations(self, user_id: int) -> List[ConversationSummary]: ...

    def get_conversation(self, conversation_id: int) -> Optional[ConversationDetail]: ...

    def update_conversation_title(self, conversation_id: int, title: str) -> bool: ...

    def toggle_favorite(self, conversation_id: int) -> bool: ...

    def delete_conversation(self, conversation_id: int) -> bool: ...


class SqlConversationStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _fail(self, operation: str, exc: Exception, **params: Any) -> PersistenceError:
        self.db.rollback()
        logger.error('Database error during %s (%s): %s', operation, params, exc)
        return PersistenceError(f'{operation} failed')

    def save_conversation(
        self,
        user_id: int,
        title: str,
        messages: Sequence[MessageIn],
        transcript: TranscriptIn,
        is_favorite: bool = False,
    ) -> int:
        try:
            now = datetime.utcnow()
            conversation = Conversation(
                user_id=user_id,
                title=title,
                is_favorite=is_favorite,
                created_at=now,
                updated_at=now,
            )
            conversation.messages = [
                ConversationMessage(
                    content=m.content,
                    sender=m.sender,
                    timestamp=m.timestamp,
                    feedback=None if m.feedback in (None, 'none') else m.feedback,
                )
                for m in messages
            ]
            conversation.transcript = ConversationTranscript(
                title=transcript.title,
                content=transcript.content,
                upload_date=transcript.upload_date,
            )
            self.db.add(conversation)
            self.db.commit()
            self.db.refresh(conversation)
        except SQLAlchemyError as exc:
            raise self._fail(
                'save_conversation', exc,
                user_id=user_id, title=title, messages_count=len(messages),
            ) from exc

        logger.info('Saved conversation %d for user %d (%d messages)',
                    conversation.id, user_id, len(messages))
        return conversation.id

    def get_conversations(self, user_id: int) -> List[ConversationSummary]:
        message_count = (
            select(func.count(ConversationMessage.id))
            .where(ConversationMessage.conversation_id == Conversation.id)
            .correlate(Conversation)
            .scalar_subquery()
        )
        try:
            rows = self.db.execute(
                select(Conversation, message_count.label('message_count'))
                .where(Conversation.user_id == user_id)
                .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
            ).all()
        except SQLAlchemyError as exc:
            raise self._fail('get_conversations', exc, user_id=user_id) from exc

        return [
            ConversationSummary.model_validate(conversation).model_copy(
                update={'message_count': count or 0}
            )
            for conversation, count in rows
        ]

    def get_conversation(self, conversation_id: int) -> Optional[ConversationDetail]:
        try:
            conversation = self.db.execute(
                select(Conversation)
                .options(selectinload(Conversation.messages), selectinload(Conversation.transcript))
                .where(Conversation.id == conversation_id)
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise self._fail('get_conversation', exc, conversation_id=conversation_id) from exc

        if conversation is None:
            return None
        detail = ConversationDetail.model_validate(conversation)
        return detail.model_copy(update={'message_count': len(detail.messages)})

    def _touch(self, conversation_id: int, operation: str, **changes: Any) -> bool:
        try:
            conversation = self.db.get(Conversation, conversation_id)
            if conversation is None:
                return False
            for key, value in changes.items():
                setattr(conversation, key, value(conversation) if callable(value) else value)
            conversation.updated_at = datetime.utcnow()
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail(operation, exc, conversation_id=conversation_id) from exc
        return True

    def update_conversation_title(self, conversation_id: int, title: str) -> bool:
        return self._touch(conversation_id, 'update_conversation_title', title=title)

    def toggle_favorite(self, conversation_id: int) -> bool:
        return self._touch(
            conversation_id, 'toggle_favorite',
            is_favorite=lambda c: not c.is_favorite,
        )

    def delete_conversation(self, conversation_id: int) -> bool:
        try:
            conversation = self.db.get(Conversation, conversation_id)
            if conversation is None:
                return False
            self.db.delete(conversation)
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail('delete_conversation', exc, conversation_id=conversation_id) from exc
        logger.info('Deleted conversation %d', conversation_id)
        return True
