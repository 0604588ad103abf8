from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mission_coach.db.base import Base


class Conversation(Base):
    __tablename__ = 'conversations'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False, default='')
    is_favorite: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    messages = relationship(
        'ConversationMessage',
        back_populates='conversation',
        cascade='all, delete-orphan',
        order_by='ConversationMessage.timestamp',
    )
    transcript = relationship(
        'ConversationTranscript',
        back_populates='conversation',
        cascade='all, delete-orphan',
        uselist=False,
    )

    __table_args__ = (
        Index('ix_conversations_user_updated', 'user_id', 'updated_at'),
    )


class ConversationMessage(Base):
    __tablename__ = 'messages'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    conversation_id: Mapped[int] = mapped_column(
        ForeignKey('conversations.id', ondelete='CASCADE'), nullable=False, index=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    sender: Mapped[str] = mapped_column(String, nullable=False)  # 'user' | 'ai'
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    feedback: Mapped[str | None] = mapped_column(String, nullable=True)

    conversation = relationship('Conversation', back_populates='messages')


class ConversationTranscript(Base):
    __tablename__ = 'transcripts'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    conversation_id: Mapped[int] = mapped_column(
        ForeignKey('conversations.id', ondelete='CASCADE'), nullable=False, unique=True
    )
    title: Mapped[str | None] = mapped_column(String, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    upload_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    conversation = relationship('Conversation', back_populates='transcript')


class ConversationFeedback(Base):
    """Snapshot of a conversation taken when the user rates a reply."""
    __tablename__ = 'conversation_feedback'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    session_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    message_id: Mapped[str] = mapped_column(String, nullable=False)
    feedback_type: Mapped[str] = mapped_column(String, nullable=False)  # 'positive' | 'negative'
    detail: Mapped[str | None] = mapped_column(Text, nullable=True)
    message_content: Mapped[str] = mapped_column(Text, default='', nullable=False)
    transcript_context: Mapped[str] = mapped_column(Text, default='', nullable=False)
    transcript_title: Mapped[str] = mapped_column(String, default='', nullable=False)
    session_duration_ms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    conversation_json: Mapped[str] = mapped_column(Text, default='[]', nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
