"""
Coaching router — /api/coach

Transcript upload starts a CoachingSession held in memory; the chat,
progress, settings and feedback endpoints then act on that session.
"""
from __future__ import annotations

import logging
import os
from typing import List, Literal, Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, Query, UploadFile, status

from mission_coach.api.deps import (
    get_ai_client,
    get_feedback_collector,
    get_history_store,
    get_session_registry,
)
from mission_coach.core.config import settings
from mission_coach.core.errors import (
    RateLimitExceeded,
    SessionBusyError,
    StepConfigurationError,
    TranscriptReadError,
    TranscriptValidationError,
)
from mission_coach.schemas.coaching import (
    ChatMessage,
    ChatSessionRecord,
    CleaningStats,
    FavoriteResponse,
    FeedbackRequest,
    SendMessageRequest,
    SendMessageResponse,
    SessionState,
    StepTransitionResponse,
)
from mission_coach.schemas.conversations import TitleUpdate
from mission_coach.services.ai_coach.client import AIResponseClient
from mission_coach.services.chat_history import ChatHistoryStore
from mission_coach.services.coaching import settings as settings_ops
from mission_coach.services.coaching.registry import SessionRegistry
from mission_coach.services.coaching.session import CoachingSession
from mission_coach.services.coaching.settings import AISettings, AISettingsUpdate
from mission_coach.services.feedback import FeedbackCollector
from mission_coach.services.transcripts import (
    MAX_TRANSCRIPT_BYTES,
    Transcript,
    clean_transcript,
    read_transcript,
    transcript_title,
    validate_upload,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/api/coach', tags=['coach'])


def _get_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> CoachingSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Session not found',
        )
    return session


def _apply_settings(session: CoachingSession, new_settings: AISettings) -> AISettings:
    try:
        return session.update_settings(new_settings.model_dump())
    except StepConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)


@router.get('/debug')
def coach_debug(client: AIResponseClient = Depends(get_ai_client)):
    """Debug endpoint — shows which provider is active, model, PID, CWD."""
    return {
        'groq_key_loaded': bool(settings.GROQ_API_KEY),
        'provider': client.provider.__class__.__name__,
        'model': settings.GROQ_MODEL,
        'max_retries': client.max_retries,
        'rate_limit_tokens': client.rate_limiter.tokens,
        'pid': os.getpid(),
        'cwd': os.getcwd(),
    }


@router.get('/settings/defaults', response_model=AISettings)
def read_default_settings():
    return settings_ops.default_settings()


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

@router.post('/sessions', response_model=SessionState, status_code=status.HTTP_201_CREATED)
async def create_session(
    file: UploadFile = File(...),
    client: AIResponseClient = Depends(get_ai_client),
    registry: SessionRegistry = Depends(get_session_registry),
    history_store: ChatHistoryStore = Depends(get_history_store),
    feedback_collector: FeedbackCollector = Depends(get_feedback_collector),
):
    """
    Upload a transcript and start a coaching session.

    - Rejects files over 5MB or that are not plain text (400, {type, message}).
    - Cleans the transcript and asks the assistant for its opening analysis.
    """
    # One byte past the limit is enough to know the file is too large
    raw = await file.read(MAX_TRANSCRIPT_BYTES + 1)
    try:
        validate_upload(file.filename or '', file.content_type, len(raw))
        content = read_transcript(raw)
    except (TranscriptValidationError, TranscriptReadError) as exc:
        logger.info('Transcript upload rejected (%s): %s', exc.kind, file.filename)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={'type': exc.kind, 'message': exc.message},
        )

    cleaned = clean_transcript(content)
    transcript = Transcript(content=cleaned.content, title=transcript_title(file.filename or ''))

    session = CoachingSession(
        transcript,
        client,
        history_store=history_store,
        feedback_collector=feedback_collector,
        cleaning_stats=CleaningStats(
            original_length=cleaned.stats.original_length,
            cleaned_length=cleaned.stats.cleaned_length,
            duplicates_removed=cleaned.stats.duplicates_removed,
            errors_fixed=cleaned.stats.errors_fixed,
        ),
        user_id=settings.DEFAULT_USER_ID,
    )
    registry.add(session)

    logger.info(
        "create_session — session=%s title=%s transcript_len=%d provider=%s",
        session.id[:8],
        transcript.title,
        len(transcript.content),
        client.provider.__class__.__name__,
    )
    await session.start()
    return session.state()


@router.get('/sessions/{session_id}', response_model=SessionState)
def read_session(session: CoachingSession = Depends(_get_session)):
    return session.state()


@router.delete('/sessions/{session_id}', status_code=status.HTTP_204_NO_CONTENT)
def close_session(
    session: CoachingSession = Depends(_get_session),
    registry: SessionRegistry = Depends(get_session_registry),
):
    registry.remove(session.id)


@router.post('/sessions/{session_id}/messages', response_model=SendMessageResponse)
async def send_message(
    payload: SendMessageRequest,
    session: CoachingSession = Depends(_get_session),
):
    try:
        result = await session.send_message(payload.message)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except SessionBusyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message)
    except RateLimitExceeded as exc:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=exc.message)

    logger.info(
        "send_message OK — session=%s reply_len=%d step_completed=%s",
        session.id[:8],
        len(result.reply.content),
        result.step_completed,
    )
    return SendMessageResponse(
        reply=result.reply,
        step_completed=result.step_completed,
        progress=session.progress_state(),
    )


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

@router.post('/sessions/{session_id}/next-step', response_model=StepTransitionResponse)
def next_step(session: CoachingSession = Depends(_get_session)):
    advanced = session.move_to_next_step()
    return StepTransitionResponse(advanced=advanced, progress=session.progress_state())


@router.post('/sessions/{session_id}/reset', response_model=StepTransitionResponse)
def reset_progress(session: CoachingSession = Depends(_get_session)):
    session.reset_progress()
    return StepTransitionResponse(advanced=False, progress=session.progress_state())


# ---------------------------------------------------------------------------
# Settings and step editing
# ---------------------------------------------------------------------------

@router.put('/sessions/{session_id}/settings', response_model=AISettings)
def update_session_settings(
    payload: AISettingsUpdate,
    session: CoachingSession = Depends(_get_session),
):
    try:
        return session.update_settings(payload)
    except StepConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)


@router.post('/sessions/{session_id}/steps', response_model=AISettings, status_code=status.HTTP_201_CREATED)
def add_step(session: CoachingSession = Depends(_get_session)):
    return _apply_settings(session, settings_ops.add_step(session.settings))


def _edit_step(session: CoachingSession, operation, *args) -> AISettings:
    try:
        new_settings = operation(session.settings, *args)
    except StepConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    return _apply_settings(session, new_settings)


@router.delete('/sessions/{session_id}/steps/{step_id}', response_model=AISettings)
def delete_step(step_id: str, session: CoachingSession = Depends(_get_session)):
    return _edit_step(session, settings_ops.delete_step, step_id)


@router.post('/sessions/{session_id}/steps/{step_id}/move', response_model=AISettings)
def move_step(
    step_id: str,
    direction: Literal['up', 'down'] = Query(...),
    session: CoachingSession = Depends(_get_session),
):
    if step_id not in session.settings.step_order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f'Étape inconnue: {step_id}')
    index = session.settings.step_order.index(step_id)
    return _edit_step(session, settings_ops.move_step, index, direction)


@router.post('/sessions/{session_id}/steps/{step_id}/questions', response_model=AISettings)
def add_question(step_id: str, session: CoachingSession = Depends(_get_session)):
    return _edit_step(session, settings_ops.add_question, step_id)


@router.delete('/sessions/{session_id}/steps/{step_id}/questions/{index}', response_model=AISettings)
def remove_question(step_id: str, index: int, session: CoachingSession = Depends(_get_session)):
    return _edit_step(session, settings_ops.remove_question, step_id, index)


# ---------------------------------------------------------------------------
# Feedback and favourites
# ---------------------------------------------------------------------------

@router.post('/sessions/{session_id}/feedback', response_model=ChatMessage)
def give_feedback(
    payload: FeedbackRequest,
    session: CoachingSession = Depends(_get_session),
):
    try:
        return session.set_feedback(payload.message_id, payload.type, payload.detail)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Message not found')


@router.post('/sessions/{session_id}/favorite', response_model=FavoriteResponse)
def toggle_favorite(session: CoachingSession = Depends(_get_session)):
    return FavoriteResponse(is_favorite=session.toggle_favorite())


# ---------------------------------------------------------------------------
# Local chat history
# ---------------------------------------------------------------------------

def _history_not_found(session_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f'Chat session {session_id} not found',
    )


@router.get('/history', response_model=List[ChatSessionRecord])
def list_history(history_store: ChatHistoryStore = Depends(get_history_store)):
    return history_store.get_chat_history()


@router.get('/history/{session_id}', response_model=ChatSessionRecord)
def read_history_entry(
    session_id: str,
    history_store: ChatHistoryStore = Depends(get_history_store),
):
    record = history_store.load_chat_session(session_id)
    if record is None:
        raise _history_not_found(session_id)
    return record


@router.put('/history/{session_id}', response_model=ChatSessionRecord)
def update_history_entry(
    session_id: str,
    action: Literal['title', 'favorite'] = Query(...),
    payload: Optional[TitleUpdate] = Body(None),
    history_store: ChatHistoryStore = Depends(get_history_store),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Rename or (un)favourite a stored chat; a live session is kept in step."""
    if action == 'title' and payload is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='title is required for action=title',
        )
    if history_store.load_chat_session(session_id) is None:
        raise _history_not_found(session_id)

    session = registry.get(session_id)
    if session is not None:
        if action == 'title':
            session.rename(payload.title)
        else:
            session.toggle_favorite()
        record = history_store.load_chat_session(session_id)
    elif action == 'title':
        record = history_store.rename_chat_session(session_id, payload.title)
    else:
        record = history_store.toggle_favorite(session_id)

    if record is None:
        raise _history_not_found(session_id)
    logger.info('Chat session %s updated (action=%s)', session_id[:8], action)
    return record


@router.delete('/history/{session_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_history_entry(
    session_id: str,
    history_store: ChatHistoryStore = Depends(get_history_store),
    registry: SessionRegistry = Depends(get_session_registry),
):
    if not history_store.delete_chat_session(session_id):
        raise _history_not_found(session_id)
    registry.remove(session_id)


@router.post('/history/{session_id}/resume', response_model=SessionState)
def resume_session(
    session_id: str,
    client: AIResponseClient = Depends(get_ai_client),
    registry: SessionRegistry = Depends(get_session_registry),
    history_store: ChatHistoryStore = Depends(get_history_store),
    feedback_collector: FeedbackCollector = Depends(get_feedback_collector),
):
    """Make a stored chat live again; an already live session is returned as is."""
    session = registry.get(session_id)
    if session is not None:
        return session.state()

    record = history_store.load_chat_session(session_id)
    if record is None:
        raise _history_not_found(session_id)

    session = CoachingSession.from_record(
        record,
        client,
        history_store=history_store,
        feedback_collector=feedback_collector,
        user_id=settings.DEFAULT_USER_ID,
    )
    registry.add(session)
    logger.info('resume_session — session=%s messages=%d', session.id[:8], len(session.messages))
    return session.state()
