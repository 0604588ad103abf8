"""In-process registry of live coaching sessions (lost on restart)."""
from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Optional

from mission_coach.services.coaching.session import CoachingSession

logger = logging.getLogger(__name__)


class SessionRegistry:
    def __init__(self, max_sessions: int = 500) -> None:
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, CoachingSession] = OrderedDict()

    def add(self, session: CoachingSession) -> CoachingSession:
        self._sessions[session.id] = session
        while len(self._sessions) > self.max_sessions:
            evicted_id, _ = self._sessions.popitem(last=False)
            logger.info('Evicted coaching session %s (registry full)', evicted_id)
        return session

    def get(self, session_id: str) -> Optional[CoachingSession]:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)
