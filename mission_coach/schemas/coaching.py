from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mission_coach.services.coaching.settings import AISettings


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMessage(_CamelModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    content: str
    sender: Literal['user', 'ai']
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    feedback: Literal['positive', 'negative', 'none'] = 'none'


class TranscriptRecord(_CamelModel):
    id: str
    content: str
    title: str
    upload_date: datetime


class ChatSessionRecord(_CamelModel):
    """One entry of the local chat history file."""
    id: str
    title: str
    date: datetime
    preview: str = ''
    messages: List[ChatMessage] = Field(default_factory=list)
    transcript: TranscriptRecord
    is_favorite: bool = False


class CleaningStats(_CamelModel):
    original_length: int
    cleaned_length: int
    duplicates_removed: int
    errors_fixed: int


class ProgressState(_CamelModel):
    current_step: str
    completed_steps: List[str]
    is_complete: bool
    can_proceed_to_next: bool
    step_number: int
    total_steps: int
    completion_ratio: float
    current_title: Optional[str] = None
    current_description: Optional[str] = None
    current_question: Optional[str] = None


class SessionState(_CamelModel):
    session_id: str
    title: str
    is_favorite: bool = False
    messages: List[ChatMessage]
    progress: Optional[ProgressState] = None
    settings: AISettings
    cleaning_stats: Optional[CleaningStats] = None


class SendMessageRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=8000)


class SendMessageResponse(_CamelModel):
    reply: ChatMessage
    step_completed: bool = False
    progress: Optional[ProgressState] = None


class FeedbackRequest(_CamelModel):
    message_id: str
    type: Literal['positive', 'negative']
    detail: Optional[str] = Field(None, max_length=4000)


class StepTransitionResponse(_CamelModel):
    advanced: bool
    progress: Optional[ProgressState] = None


class FavoriteResponse(_CamelModel):
    is_favorite: bool
