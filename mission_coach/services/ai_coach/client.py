"""
AIResponseClient — rate-limited, retrying wrapper around a CoachProvider.

Flow for one call:
    rate limiter → sanitise message + transcript → assemble prompt →
    provider.complete(), retried with exponential backoff.

Only the final failure is surfaced (as ExhaustedRetries with a generic
French message); provider detail is logged.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from mission_coach.core.errors import ExhaustedRetries
from mission_coach.services.ai_coach.base import CoachProvider
from mission_coach.services.ai_coach.prompts import build_messages, build_system_prompt
from mission_coach.services.ai_coach.rate_limiter import TokenBucket
from mission_coach.services.ai_coach.sanitize import sanitize_input
from mission_coach.services.coaching.settings import AISettings

logger = logging.getLogger(__name__)

TEMPERATURE = 0.7
NO_RESPONSE_TEXT = 'Aucune réponse générée'
EXHAUSTED_RETRIES_MESSAGE = (
    "Désolé, je n'arrive pas à obtenir une réponse après plusieurs essais. "
    "Peux-tu réessayer?"
)


class AIResponseClient:
    def __init__(
        self,
        provider: CoachProvider,
        rate_limiter: Optional[TokenBucket] = None,
        max_retries: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        keep_unicode: bool = True,
    ) -> None:
        self.provider = provider
        self.rate_limiter = rate_limiter or TokenBucket()
        self.max_retries = max(1, max_retries)
        self.base_delay = base_delay
        self._sleep = sleep
        self.keep_unicode = keep_unicode

    async def get_response(
        self,
        message: str,
        transcript: str,
        settings: AISettings,
        step_context: Optional[str] = None,
    ) -> str:
        """Return assistant text for ``message`` about ``transcript``.

        Raises RateLimitExceeded (not retried) or ExhaustedRetries.
        """
        self.rate_limiter.check_limit()

        sanitized_message = sanitize_input(message, keep_unicode=self.keep_unicode)
        sanitized_transcript = sanitize_input(transcript, keep_unicode=self.keep_unicode)
        messages = build_messages(
            build_system_prompt(settings, sanitized_transcript, step_context),
            sanitized_message,
        )

        attempts = 0
        while True:
            try:
                logger.info(
                    "Starting AI call (attempt %d/%d) — provider=%s transcript_len=%d",
                    attempts + 1, self.max_retries, self.provider.name, len(sanitized_transcript),
                )
                result = await self.provider.complete(
                    messages,
                    temperature=TEMPERATURE,
                    max_tokens=settings.max_tokens,
                )
                return result.content or NO_RESPONSE_TEXT
            except Exception as exc:
                attempts += 1
                logger.error("Attempt %d failed: %s", attempts, exc, exc_info=True)

                # Every failed attempt is followed by its backoff, the last one included
                delay = self.base_delay * (2 ** attempts)
                if attempts >= self.max_retries:
                    await self._sleep(delay)
                    raise ExhaustedRetries(EXHAUSTED_RETRIES_MESSAGE, attempts) from exc

                logger.info("Retrying in %.1fs...", delay)
                await self._sleep(delay)
