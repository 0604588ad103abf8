"""Shared fixtures: offline provider, in-memory database, recorded sleeps."""
from __future__ import annotations

import os

# Configure before any mission_coach module reads the environment
os.environ.setdefault('COACH_PROVIDER', 'stub')
os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('GROQ_API_KEY', '')

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mission_coach.db.init_db import init_db
from mission_coach.services.ai_coach.base import CoachProvider, CompletionResult
from mission_coach.services.ai_coach.client import AIResponseClient
from mission_coach.services.ai_coach.rate_limiter import TokenBucket


class ScriptedProvider(CoachProvider):
    """Returns queued replies in order; queued exceptions are raised instead."""

    name = 'scripted'

    def __init__(self, replies=()):
        self.replies = list(replies)
        self.calls = []

    async def complete(self, messages, *, temperature, max_tokens):
        self.calls.append({
            'messages': messages,
            'temperature': temperature,
            'max_tokens': max_tokens,
        })
        reply = self.replies.pop(0) if self.replies else 'ok'
        if isinstance(reply, Exception):
            raise reply
        return CompletionResult(content=reply, model_name='scripted', provider_name=self.name)


class FakeClock:
    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_client(sleeps):
    """Build an AIResponseClient around a ScriptedProvider with recorded sleeps."""

    async def fake_sleep(delay):
        sleeps.append(delay)

    def _make(replies=(), max_retries=3, base_delay=1.0, rate_limiter=None):
        provider = ScriptedProvider(replies)
        client = AIResponseClient(
            provider,
            rate_limiter=rate_limiter or TokenBucket(capacity=1000),
            max_retries=max_retries,
            base_delay=base_delay,
            sleep=fake_sleep,
        )
        return client, provider

    return _make


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def api(session_factory, tmp_path, sleeps):
    """TestClient over the real app with storage and AI dependencies swapped out."""
    from fastapi.testclient import TestClient

    from main import app
    from mission_coach.api import deps
    from mission_coach.services.ai_coach.stub_provider import StubProvider
    from mission_coach.services.chat_history import ChatHistoryStore
    from mission_coach.services.coaching.registry import SessionRegistry
    from mission_coach.services.conversations import SqlConversationStore
    from mission_coach.services.feedback import FeedbackCollector

    async def fake_sleep(delay):
        sleeps.append(delay)

    client = AIResponseClient(StubProvider(), rate_limiter=TokenBucket(capacity=1000), sleep=fake_sleep)
    registry = SessionRegistry()

    def conversation_store():
        db = session_factory()
        try:
            yield SqlConversationStore(db)
        finally:
            db.close()

    app.dependency_overrides[deps.get_conversation_store] = conversation_store
    app.dependency_overrides[deps.get_ai_client] = lambda: client
    app.dependency_overrides[deps.get_session_registry] = lambda: registry
    app.dependency_overrides[deps.get_history_store] = lambda: ChatHistoryStore(tmp_path / 'history.json')
    app.dependency_overrides[deps.get_feedback_collector] = lambda: FeedbackCollector(session_factory)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
