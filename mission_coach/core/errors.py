"""
Error taxonomy for the coaching service.

User-facing messages are French and never carry provider detail; the
underlying cause is chained (``raise ... from exc``) and logged instead.
"""
from __future__ import annotations

from typing import Literal


class CoachError(Exception):
    """Base class for every error raised by mission_coach."""

    def __init__(self, message: str = '') -> None:
        super().__init__(message)
        self.message = message


# --- transcript upload -------------------------------------------------------

class TranscriptValidationError(CoachError):
    """Uploaded file rejected before reading (size or type)."""

    def __init__(self, kind: Literal['size', 'format'], message: str) -> None:
        super().__init__(message)
        self.kind = kind


class TranscriptReadError(CoachError):
    kind = 'read'


# --- AI calls ----------------------------------------------------------------

class RateLimitExceeded(CoachError):
    """Local token bucket is empty."""


class ConfigurationError(CoachError):
    """Provider credentials or settings are missing."""


class ProviderError(CoachError):
    """Transient failure from the LLM provider; retried by the client."""


class ExhaustedRetries(CoachError):
    """Every attempt failed; ``message`` is safe to show to the user."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


# --- persistence -------------------------------------------------------------

class PersistenceError(CoachError):
    """Storage failure. Logged and swallowed outside user-initiated actions."""


# --- coaching steps and sessions --------------------------------------------

class StepConfigurationError(CoachError):
    """The configured step map / step order is inconsistent."""


class EmptyStepOrderError(StepConfigurationError):
    def __init__(self) -> None:
        super().__init__("Aucune étape de coaching n'est configurée.")


class UnknownStepError(StepConfigurationError):
    def __init__(self, step_id: str) -> None:
        super().__init__(f'Étape inconnue: {step_id}')
        self.step_id = step_id


class SessionBusyError(CoachError):
    """A message is already being processed for this session."""
