"""Transcript upload: validation, decoding and text clean-up.

Cleaning is a fixed sequence of pure string transformations:

1. collapse immediately consecutive identical lines;
2. whitespace runs → one space, 3+ newlines → two, trailing and leading
   whitespace per line, immediately repeated words.

Each step is counted so the upload response can report what changed.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import PurePath
from typing import BinaryIO, Optional

from mission_coach.core.errors import TranscriptReadError, TranscriptValidationError

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_BYTES = 5 * 1024 * 1024
ALLOWED_CONTENT_TYPES = frozenset({'text/plain'})
# Some clients send no useful type; the suffix decides then
_GENERIC_CONTENT_TYPES = frozenset({'', 'application/octet-stream'})

SIZE_ERROR_MESSAGE = 'Ton fichier est trop volumineux. Taille maximum: 5MB'
FORMAT_ERROR_MESSAGE = 'Tu dois utiliser uniquement des fichiers .txt'
READ_ERROR_MESSAGE = "Il y a eu une erreur lors de la lecture de ton fichier. Peux-tu réessayer?"

# Order matters: later patterns see the output of earlier ones
_ERROR_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r'\s{2,}'), ' '),
    (re.compile(r'\n{3,}'), '\n\n'),
    (re.compile(r'[^\S\r\n]+$', re.MULTILINE), ''),
    (re.compile(r'^\s+', re.MULTILINE), ''),
    (re.compile(r'\b(\w+)\s+\1\b'), r'\1'),
]


@dataclass
class Transcript:
    content: str
    title: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    upload_date: datetime = field(default_factory=datetime.utcnow)


@dataclass
class TranscriptStats:
    original_length: int
    cleaned_length: int
    duplicates_removed: int
    errors_fixed: int


@dataclass
class CleanedTranscript:
    content: str
    stats: TranscriptStats


def validate_upload(filename: str, content_type: Optional[str], size: int) -> None:
    """Raise TranscriptValidationError for oversized or non-text uploads."""
    if size > MAX_TRANSCRIPT_BYTES:
        raise TranscriptValidationError('size', SIZE_ERROR_MESSAGE)

    mime = (content_type or '').split(';')[0].strip().lower()
    if mime in ALLOWED_CONTENT_TYPES:
        return
    if mime in _GENERIC_CONTENT_TYPES and PurePath(filename or '').suffix.lower() == '.txt':
        return
    raise TranscriptValidationError('format', FORMAT_ERROR_MESSAGE)


def read_transcript(raw: bytes) -> str:
    """Decode uploaded bytes as UTF-8 (a leading BOM is dropped)."""
    try:
        return raw.decode('utf-8-sig')
    except UnicodeDecodeError as exc:
        logger.warning('Transcript is not valid UTF-8: %s', exc)
        raise TranscriptReadError(READ_ERROR_MESSAGE) from exc


def read_upload(stream: BinaryIO) -> str:
    try:
        raw = stream.read()
    except OSError as exc:
        logger.warning('Failed to read uploaded transcript: %s', exc)
        raise TranscriptReadError(READ_ERROR_MESSAGE) from exc
    return read_transcript(raw)


def transcript_title(filename: str) -> str:
    """File name without its last extension."""
    name = PurePath(filename or '').name
    stem, dot, _ = name.rpartition('.')
    return stem if dot and stem else name


def _collapse_consecutive_lines(text: str) -> tuple[str, int]:
    kept: list[str] = []
    removed = 0
    for line in text.split('\n'):
        if kept and kept[-1] == line:
            removed += 1
            continue
        kept.append(line)
    return '\n'.join(kept), removed


def clean_transcript(text: str) -> CleanedTranscript:
    original_length = len(text)

    cleaned, duplicates_removed = _collapse_consecutive_lines(text)

    errors_fixed = 0
    for pattern, replacement in _ERROR_PATTERNS:
        cleaned, count = pattern.subn(replacement, cleaned)
        errors_fixed += count

    stats = TranscriptStats(
        original_length=original_length,
        cleaned_length=len(cleaned),
        duplicates_removed=duplicates_removed,
        errors_fixed=errors_fixed,
    )
    logger.info(
        'Transcript cleaned: %d -> %d chars, %d duplicate lines, %d fixes',
        stats.original_length, stats.cleaned_length,
        stats.duplicates_removed, stats.errors_fixed,
    )
    return CleanedTranscript(content=cleaned.strip(), stats=stats)
