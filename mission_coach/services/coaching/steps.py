"""Coaching step identifiers and step content."""
from __future__ import annotations

import re
from typing import Iterable, List, NewType

from pydantic import BaseModel, Field

StepId = NewType('StepId', str)

STEP_ID_PREFIX = 'custom_step_'
_STEP_ID_RE = re.compile(r'^custom_step_(\d+)$')

NEW_STEP_TITLE = 'Nouvelle étape'
NEW_FOLLOW_UP_QUESTION = 'Nouvelle question de suivi ?'


class CoachingStepData(BaseModel):
    title: str
    description: str = ''
    # questions[0] is the main prompt, the rest are follow-ups
    questions: List[str] = Field(default_factory=lambda: [''])

    @property
    def main_question(self) -> str:
        return self.questions[0] if self.questions else ''

    @property
    def follow_up_questions(self) -> List[str]:
        return self.questions[1:]


def next_step_id(existing: Iterable[str]) -> StepId:
    """Return the first ``custom_step_<n>`` not already taken."""
    used = set()
    for step_id in existing:
        match = _STEP_ID_RE.match(step_id)
        if match:
            used.add(int(match.group(1)))
    n = 0
    while n in used:
        n += 1
    return StepId(f'{STEP_ID_PREFIX}{n}')
