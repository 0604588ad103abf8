"""
GroqProvider — runs coaching chat completions against the Groq API.

Uses the `groq` Python SDK with async support.  The API key is checked on
every call rather than at construction so that a missing key shows up as a
failed (and retried) attempt, the same way a network error does.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from groq import AsyncGroq, GroqError

from mission_coach.core.config import Settings, settings as default_settings
from mission_coach.core.errors import ConfigurationError, ProviderError
from mission_coach.services.ai_coach.base import CoachProvider, CompletionResult

logger = logging.getLogger(__name__)


class GroqProvider(CoachProvider):
    """Coach provider backed by Groq LLM API."""

    name = 'groq'

    def __init__(self, config: Optional[Settings] = None) -> None:
        self._config = config or default_settings
        self._model = self._config.GROQ_MODEL
        self._client: Optional[AsyncGroq] = None
        logger.info(
            "GroqProvider initialized — model=%s, key_length=%d",
            self._model,
            len(self._config.GROQ_API_KEY),
        )

    def _get_client(self) -> AsyncGroq:
        if not self._config.GROQ_API_KEY:
            logger.error("GROQ_API_KEY is missing")
            raise ConfigurationError("API key is not configured")
        if self._client is None:
            self._client = AsyncGroq(api_key=self._config.GROQ_API_KEY)
        return self._client

    async def complete(
        self,
        messages: List[Dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
    ) -> CompletionResult:
        client = self._get_client()

        logger.info(
            "GroqProvider.complete — model=%s, system_len=%d, max_tokens=%d",
            self._model,
            len(messages[0]['content']) if messages else 0,
            max_tokens,
        )

        try:
            completion = await client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except GroqError as exc:
            raise ProviderError(str(exc)) from exc

        content = None
        if completion.choices:
            content = completion.choices[0].message.content

        logger.info(
            "GroqProvider reply received — choices=%d, length=%d",
            len(completion.choices),
            len(content or ''),
        )

        return CompletionResult(
            content=content,
            model_name=self._model,
            provider_name=self.name,
        )
