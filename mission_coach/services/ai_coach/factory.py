"""
Provider and client factory.

- COACH_PROVIDER=stub  → StubProvider (deterministic, offline)
- anything else        → GroqProvider (fails per call if GROQ_API_KEY is empty)
"""
from __future__ import annotations

import logging
from typing import Optional

from mission_coach.core.config import Settings, settings as default_settings
from mission_coach.services.ai_coach.base import CoachProvider
from mission_coach.services.ai_coach.client import AIResponseClient
from mission_coach.services.ai_coach.rate_limiter import TokenBucket

logger = logging.getLogger(__name__)


def get_coach_provider(config: Optional[Settings] = None) -> CoachProvider:
    """Return the coach provider selected by configuration."""
    config = config or default_settings

    if config.COACH_PROVIDER == 'stub':
        from mission_coach.services.ai_coach.stub_provider import StubProvider
        logger.warning("⚠️ COACH_PROVIDER=stub — Using StubProvider (deterministic replies)")
        return StubProvider()

    from mission_coach.services.ai_coach.groq_provider import GroqProvider
    if config.GROQ_API_KEY:
        logger.info("✅ GROQ_API_KEY found — Using GroqProvider with model: %s", config.GROQ_MODEL)
    else:
        logger.warning(
            "⚠️ GROQ_API_KEY is empty or missing — GroqProvider calls will fail until it is set"
        )
    return GroqProvider(config)


def build_ai_client(config: Optional[Settings] = None) -> AIResponseClient:
    """Wire a provider, a rate limiter and retry settings into one client."""
    config = config or default_settings
    return AIResponseClient(
        provider=get_coach_provider(config),
        rate_limiter=TokenBucket(
            capacity=config.RATE_LIMIT_CAPACITY,
            refill_ms=config.RATE_LIMIT_REFILL_MS,
        ),
        max_retries=config.AI_MAX_RETRIES,
        base_delay=config.AI_RETRY_BASE_DELAY,
        keep_unicode=config.SANITIZE_KEEP_UNICODE,
    )
