"""
Application settings.

Values come from the environment (``.env`` is loaded by ``main.py`` before
this module is imported, and once more here for scripts and tests).
"""
from __future__ import annotations

import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None or value.strip() == '':
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _as_list(value: str | None, default: List[str]) -> List[str]:
    if not value:
        return list(default)
    return [item.strip() for item in value.split(',') if item.strip()]


class Settings:
    """Environment-backed configuration for the coaching service."""

    def __init__(self) -> None:
        self.APP_NAME: str = os.getenv('APP_NAME', 'Mission Coach')
        self.DATABASE_URL: str = os.getenv('DATABASE_URL', 'sqlite:///./mission_coach.db')
        self.CORS_ORIGINS: List[str] = _as_list(
            os.getenv('CORS_ORIGINS'), ['http://localhost:3000'],
        )

        # LLM provider
        self.COACH_PROVIDER: str = os.getenv('COACH_PROVIDER', 'groq').strip().lower()
        self.GROQ_API_KEY: str = os.getenv('GROQ_API_KEY', '').strip()
        self.GROQ_MODEL: str = os.getenv('GROQ_MODEL', 'llama-3.3-70b-versatile')

        # Resilience
        self.AI_MAX_RETRIES: int = int(os.getenv('AI_MAX_RETRIES', '3'))
        self.AI_RETRY_BASE_DELAY: float = float(os.getenv('AI_RETRY_BASE_DELAY', '1.0'))
        self.RATE_LIMIT_CAPACITY: int = int(os.getenv('RATE_LIMIT_CAPACITY', '10'))
        self.RATE_LIMIT_REFILL_MS: int = int(os.getenv('RATE_LIMIT_REFILL_MS', '1000'))

        # Keep accented letters when sanitising user input
        self.SANITIZE_KEEP_UNICODE: bool = _as_bool(os.getenv('SANITIZE_KEEP_UNICODE'), True)

        self.CHAT_HISTORY_PATH: str = os.getenv('CHAT_HISTORY_PATH', './chat_history.json')
        self.DEFAULT_USER_ID: int = int(os.getenv('DEFAULT_USER_ID', '1'))


settings = Settings()
