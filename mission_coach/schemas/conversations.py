"""Pydantic schemas for the conversation persistence API (/api/db).

Request bodies use the camelCase keys sent by the chat client; responses
mirror the stored rows (snake_case).
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Sender = Literal['user', 'ai']
FeedbackType = Literal['positive', 'negative', 'none']


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageIn(_CamelModel):
    id: Optional[str] = None
    content: str
    sender: Sender
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    feedback: Optional[FeedbackType] = None


class TranscriptIn(_CamelModel):
    id: Optional[str] = None
    content: str
    title: Optional[str] = None
    upload_date: datetime = Field(default_factory=datetime.utcnow)


class ConversationCreate(_CamelModel):
    user_id: Optional[int] = None
    title: str = Field(..., min_length=1, max_length=300)
    messages: list[MessageIn] = Field(default_factory=list)
    transcript: TranscriptIn
    is_favorite: bool = False


class ConversationCreated(_CamelModel):
    conversation_id: int


class TitleUpdate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)


class SuccessResponse(BaseModel):
    success: bool = True


class ConversationSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    title: str
    is_favorite: bool
    created_at: datetime
    updated_at: datetime
    message_count: int = 0


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int
    content: str
    sender: str
    timestamp: datetime
    feedback: Optional[str] = None


class TranscriptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int
    title: Optional[str] = None
    content: str
    upload_date: datetime


class ConversationDetail(ConversationSummary):
    messages: list[MessageOut] = Field(default_factory=list)
    transcript: Optional[TranscriptOut] = None
