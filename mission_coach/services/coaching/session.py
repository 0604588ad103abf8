"""
CoachingSession — the chat flow for one uploaded transcript.

    user message → step context + AI call → marker scan → tracker → history

Settings, progress and the AI client are held explicitly by the session;
nothing is read from module-level state.  Only one AI call may be in flight
per session (SessionBusyError otherwise).  History and feedback storage
failures are logged and never interrupt the conversation.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterator, List, Literal, Mapping, Optional, Union

from fastapi.concurrency import run_in_threadpool

from mission_coach.core.errors import (
    ExhaustedRetries,
    PersistenceError,
    RateLimitExceeded,
    SessionBusyError,
)
from mission_coach.schemas.coaching import (
    ChatMessage,
    ChatSessionRecord,
    CleaningStats,
    ProgressState,
    SessionState,
    TranscriptRecord,
)
from mission_coach.services.ai_coach.client import AIResponseClient
from mission_coach.services.ai_coach.prompts import (
    INITIAL_ANALYSIS_PROMPT,
    build_step_context,
    has_completion_marker,
    strip_completion_marker,
)
from mission_coach.services.chat_history import ChatHistoryStore
from mission_coach.services.coaching.progress import CoachingProgressTracker
from mission_coach.services.coaching.settings import AISettings, AISettingsUpdate, update_settings
from mission_coach.services.feedback import ConversationData, FeedbackCollector, FeedbackEntry
from mission_coach.services.transcripts import Transcript

logger = logging.getLogger(__name__)

INITIAL_ERROR_MESSAGE = (
    "Désolé, j'ai rencontré une erreur lors de l'analyse initiale. "
    "Peux-tu me poser directement ta première question?"
)
SEND_ERROR_MESSAGE = "Désolé, j'ai rencontré une erreur. Peux-tu réessayer?"


@dataclass
class ExchangeResult:
    reply: ChatMessage
    step_completed: bool = False


class CoachingSession:
    def __init__(
        self,
        transcript: Transcript,
        client: AIResponseClient,
        settings: Optional[AISettings] = None,
        *,
        history_store: Optional[ChatHistoryStore] = None,
        feedback_collector: Optional[FeedbackCollector] = None,
        cleaning_stats: Optional[CleaningStats] = None,
        user_id: Optional[int] = None,
    ) -> None:
        self.transcript = transcript
        self.client = client
        self.settings = settings or AISettings()
        self.history_store = history_store
        self.feedback_collector = feedback_collector
        self.cleaning_stats = cleaning_stats
        self.user_id = user_id

        self.messages: List[ChatMessage] = []
        self.is_favorite = False
        self.started_at = datetime.utcnow()
        self._busy = False
        self.tracker = self._build_tracker(self.settings)

    @classmethod
    def from_record(
        cls,
        record: ChatSessionRecord,
        client: AIResponseClient,
        settings: Optional[AISettings] = None,
        **kwargs: Any,
    ) -> 'CoachingSession':
        """Rebuild a session from its chat history entry.

        Messages, title and favourite flag come back; coaching progress is
        not stored and starts again from the first step.
        """
        transcript = Transcript(
            content=record.transcript.content,
            title=record.title,
            id=record.id,
            upload_date=record.transcript.upload_date,
        )
        session = cls(transcript, client, settings, **kwargs)
        session.messages = [m.model_copy() for m in record.messages]
        session.is_favorite = record.is_favorite
        return session

    @property
    def id(self) -> str:
        return self.transcript.id

    @property
    def is_busy(self) -> bool:
        return self._busy

    @staticmethod
    def _build_tracker(settings: AISettings) -> Optional[CoachingProgressTracker]:
        # Without configured steps the session is a free conversation
        if not settings.step_order:
            return None
        return CoachingProgressTracker.for_settings(settings)

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if self._busy:
            raise SessionBusyError('Une réponse est déjà en cours de génération.')
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    async def start(self) -> ChatMessage:
        """Ask the assistant for its opening analysis of the transcript."""
        with self._exclusive():
            try:
                text = await self.client.get_response(
                    INITIAL_ANALYSIS_PROMPT, self.transcript.content, self.settings,
                )
                reply = ChatMessage(content=strip_completion_marker(text), sender='ai')
            except (ExhaustedRetries, RateLimitExceeded) as exc:
                logger.warning('Initial analysis failed for session %s: %s', self.id, exc)
                reply = ChatMessage(content=INITIAL_ERROR_MESSAGE, sender='ai')

            self.messages = [reply]
            await run_in_threadpool(self._sync_history)
            return reply

    async def send_message(self, text: str) -> ExchangeResult:
        """Send one user message; RateLimitExceeded propagates untouched."""
        text = text.strip()
        if not text:
            raise ValueError('Le message est vide.')

        with self._exclusive():
            # Settings may change while the reply is pending; the signal goes
            # to the tracker that was active when the message was sent
            tracker = self.tracker
            step_id = None
            step_context = None
            if tracker is not None and not tracker.is_complete:
                step_id = tracker.current_step
                step_context = build_step_context(
                    self.settings.get_step(step_id), self.settings.max_follow_ups,
                )

            user_message = ChatMessage(content=text, sender='user')
            self.messages.append(user_message)

            step_completed = False
            try:
                reply_text = await self.client.get_response(
                    text, self.transcript.content, self.settings, step_context,
                )
            except ExhaustedRetries as exc:
                logger.warning('Message failed for session %s: %s', self.id, exc)
                reply = ChatMessage(content=SEND_ERROR_MESSAGE, sender='ai')
            except Exception:
                # Not answered: drop the user turn so it can be re-sent
                self.messages.remove(user_message)
                raise
            else:
                if (
                    step_id is not None
                    and tracker is self.tracker
                    and has_completion_marker(reply_text)
                ):
                    step_completed = tracker.complete_step(step_id)
                reply = ChatMessage(content=strip_completion_marker(reply_text), sender='ai')

            self.messages.append(reply)
            await run_in_threadpool(self._sync_history)
            return ExchangeResult(reply=reply, step_completed=step_completed)

    # ------------------------------------------------------------------
    # Progress and settings
    # ------------------------------------------------------------------

    def move_to_next_step(self) -> bool:
        if self.tracker is None:
            return False
        return self.tracker.move_to_next_step()

    def reset_progress(self) -> None:
        if self.tracker is not None:
            self.tracker.reset_progress()

    def update_settings(self, patch: Union[AISettingsUpdate, Mapping[str, Any]]) -> AISettings:
        new_settings = update_settings(self.settings, patch)
        new_settings.validate_steps()

        if not new_settings.step_order:
            self.tracker = None
        elif self.tracker is None:
            self.tracker = CoachingProgressTracker(new_settings.step_order)
        else:
            self.tracker.set_step_order(new_settings.step_order)

        self.settings = new_settings
        logger.info('Settings updated for session %s (%d steps)', self.id, len(new_settings.step_order))
        return new_settings

    # ------------------------------------------------------------------
    # Feedback, favourites, history
    # ------------------------------------------------------------------

    def _find_message(self, message_id: str) -> ChatMessage:
        for message in self.messages:
            if message.id == message_id:
                return message
        raise KeyError(message_id)

    def set_feedback(
        self,
        message_id: str,
        feedback_type: Literal['positive', 'negative'],
        detail: Optional[str] = None,
    ) -> ChatMessage:
        """Rate a message; rating it again with the same type clears the rating."""
        message = self._find_message(message_id)

        if message.feedback == feedback_type:
            message.feedback = 'none'
            self._sync_history()
            return message

        message.feedback = feedback_type
        self._sync_history()
        if self.feedback_collector is None:
            return message

        duration = datetime.utcnow() - self.started_at
        data = ConversationData(
            transcript=self.transcript.content,
            conversation=[
                {
                    'role': m.sender,
                    'content': m.content,
                    'timestamp': m.timestamp.isoformat(),
                    'feedback': None if m.feedback == 'none' else m.feedback,
                }
                for m in self.messages
            ],
            upload_date=self.transcript.upload_date,
            transcript_title=self.transcript.title,
            session_duration_ms=int(duration.total_seconds() * 1000),
            last_feedback=FeedbackEntry(
                message_id=message_id,
                type=feedback_type,
                message_content=message.content,
                transcript_context=self.transcript.content,
                detailed_feedback=detail,
                user_id=self.user_id,
            ),
            session_id=self.id,
        )
        try:
            self.feedback_collector.save_conversation_data(data)
        except PersistenceError as exc:
            logger.error('Error saving feedback for session %s: %s', self.id, exc)
        return message

    def toggle_favorite(self) -> bool:
        self.is_favorite = not self.is_favorite
        self._sync_history()
        return self.is_favorite

    def rename(self, title: str) -> None:
        self.transcript.title = title
        self._sync_history()

    def _sync_history(self) -> None:
        if self.history_store is None:
            return
        try:
            self.history_store.save_chat(
                self.messages,
                TranscriptRecord(
                    id=self.transcript.id,
                    content=self.transcript.content,
                    title=self.transcript.title,
                    upload_date=self.transcript.upload_date,
                ),
                is_favorite=self.is_favorite,
            )
        except PersistenceError as exc:
            logger.warning('History sync failed for session %s: %s', self.id, exc)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def progress_state(self) -> Optional[ProgressState]:
        tracker = self.tracker
        if tracker is None:
            return None
        step = self.settings.coaching_steps.get(tracker.current_step)
        return ProgressState(
            current_step=tracker.current_step,
            completed_steps=tracker.completed_steps,
            is_complete=tracker.is_complete,
            can_proceed_to_next=tracker.can_proceed_to_next,
            step_number=tracker.step_number,
            total_steps=tracker.total_steps,
            completion_ratio=tracker.completion_ratio,
            current_title=step.title if step else None,
            current_description=step.description if step else None,
            current_question=step.main_question if step else None,
        )

    def state(self) -> SessionState:
        return SessionState(
            session_id=self.id,
            title=self.transcript.title,
            is_favorite=self.is_favorite,
            messages=list(self.messages),
            progress=self.progress_state(),
            settings=self.settings,
            cleaning_stats=self.cleaning_stats,
        )
