"""Local chat history stored as a single JSON file.

The file-backed counterpart of the SQL conversation store: sessions are
keyed by transcript id, newest first.  A missing or unreadable file reads
as an empty history.  Read-modify-write cycles on one file are serialised
by a per-path lock shared by every store instance in the process.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from mission_coach.core.errors import PersistenceError
from mission_coach.schemas.coaching import ChatMessage, ChatSessionRecord, TranscriptRecord

logger = logging.getLogger(__name__)

_path_locks: Dict[str, threading.RLock] = {}
_path_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.RLock:
    key = os.path.abspath(path)
    with _path_locks_guard:
        lock = _path_locks.get(key)
        if lock is None:
            lock = _path_locks[key] = threading.RLock()
        return lock


class ChatHistoryStore:
    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._lock = _lock_for(self.path)

    def _load_json(self) -> list[Any]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning('Unreadable chat history %s: %s', self.path, exc)
            return []
        return data if isinstance(data, list) else []

    def _save_json(self, records: Sequence[ChatSessionRecord]) -> None:
        payload = [r.model_dump(mode='json', by_alias=True) for r in records]
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                'w', encoding='utf-8', dir=self.path.parent,
                prefix=self.path.name + '.', suffix='.tmp', delete=False,
            ) as f:
                tmp_name = f.name
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            logger.error('Failed to write chat history %s: %s', self.path, exc)
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError('save_chat failed') from exc

    def get_chat_history(self) -> List[ChatSessionRecord]:
        records: List[ChatSessionRecord] = []
        for item in self._load_json():
            try:
                records.append(ChatSessionRecord.model_validate(item))
            except ValidationError as exc:
                logger.warning('Skipping malformed chat history entry: %s', exc)
        return records

    def save_chat(
        self,
        messages: Sequence[ChatMessage],
        transcript: TranscriptRecord,
        is_favorite: Optional[bool] = None,
    ) -> ChatSessionRecord:
        """Insert or replace the session for ``transcript.id``.

        ``is_favorite=None`` keeps the stored flag (False for new sessions).
        """
        with self._lock:
            history = self.get_chat_history()
            index = next((i for i, chat in enumerate(history) if chat.id == transcript.id), None)

            if is_favorite is None:
                is_favorite = history[index].is_favorite if index is not None else False

            record = ChatSessionRecord(
                id=transcript.id,
                title=transcript.title,
                date=transcript.upload_date,
                preview=messages[-1].content if messages else '',
                messages=list(messages),
                transcript=transcript,
                is_favorite=is_favorite,
            )

            if index is not None:
                history[index] = record
            else:
                history.insert(0, record)

            self._save_json(history)
            return record

    def load_chat_session(self, session_id: str) -> Optional[ChatSessionRecord]:
        return next((chat for chat in self.get_chat_history() if chat.id == session_id), None)

    def _update(self, session_id: str, **changes: Any) -> Optional[ChatSessionRecord]:
        with self._lock:
            history = self.get_chat_history()
            for i, chat in enumerate(history):
                if chat.id == session_id:
                    history[i] = chat.model_copy(update=changes)
                    self._save_json(history)
                    return history[i]
            return None

    def rename_chat_session(self, session_id: str, title: str) -> Optional[ChatSessionRecord]:
        with self._lock:
            record = self.load_chat_session(session_id)
            if record is None:
                return None
            transcript = record.transcript.model_copy(update={'title': title})
            return self._update(session_id, title=title, transcript=transcript)

    def toggle_favorite(self, session_id: str) -> Optional[ChatSessionRecord]:
        with self._lock:
            record = self.load_chat_session(session_id)
            if record is None:
                return None
            return self._update(session_id, is_favorite=not record.is_favorite)

    def delete_chat_session(self, session_id: str) -> bool:
        with self._lock:
            history = self.get_chat_history()
            remaining = [chat for chat in history if chat.id != session_id]
            if len(remaining) == len(history):
                return False
            self._save_json(remaining)
            return True
