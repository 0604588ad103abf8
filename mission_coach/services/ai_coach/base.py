"""
CoachProvider abstract base class and CompletionResult data class.

A provider performs exactly one chat-completion call.  Rate limiting,
sanitisation and retries live in AIResponseClient, above every provider.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass
class CompletionResult:
    """Value object returned by every provider."""
    content: Optional[str]  # None when the provider returned no choices
    model_name: str = 'unknown'
    provider_name: str = 'unknown'  # "groq" or "stub"


class CoachProvider(ABC):
    """Abstract interface for the LLM backend."""

    name = 'unknown'

    @abstractmethod
    async def complete(
        self,
        messages: List[Dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
    ) -> CompletionResult:
        """Run one chat completion.

        Raises ConfigurationError when credentials are missing and
        ProviderError for any failure reported by the backend.
        """
        ...
