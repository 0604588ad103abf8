"""
AISettings — per-session assistant configuration.

Created with defaults when a session starts and replaced wholesale through
``update_settings``.  Every step-editing helper below returns a new settings
object; the input is never mutated.
"""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mission_coach.core.errors import StepConfigurationError, UnknownStepError
from mission_coach.services.coaching.steps import (
    NEW_FOLLOW_UP_QUESTION,
    NEW_STEP_TITLE,
    CoachingStepData,
    StepId,
    next_step_id,
)

ResponseLength = Literal['concise', 'balanced', 'detailed']

RESPONSE_TOKEN_BUDGETS: Dict[str, int] = {
    'concise': 300,
    'balanced': 600,
    'detailed': 1000,
}

MAX_FOLLOW_UPS_LIMIT = 4

DEFAULT_INSTRUCTIONS = """\
Tu es une IA conversationnelle attentive et bienveillante, conçue pour aider les utilisateurs à réfléchir sur leurs valeurs, leurs forces et leurs passions, afin de développer une déclaration de mission personnelle. Tu joues un rôle de coach empathique, qui accompagne la personne dans une introspection en profondeur de manière bienveillante et motivante.

Ton objectif est de favoriser une discussion fluide et naturelle qui aide l'utilisateur à découvrir ce qui le motive réellement, loin des idéaux abstraits."""

DEFAULT_TONALITY = 'Empathique et encourageant'


class AISettings(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    use_tutoiement: bool = True
    custom_instructions: str = DEFAULT_INSTRUCTIONS
    tonality: str = DEFAULT_TONALITY
    max_follow_ups: int = Field(2, ge=0, le=MAX_FOLLOW_UPS_LIMIT)
    bold_words: bool = True
    response_length: ResponseLength = 'balanced'
    coaching_steps: Dict[StepId, CoachingStepData] = Field(default_factory=dict)
    # Traversal order; wins over any ordering implied by coaching_steps
    step_order: List[StepId] = Field(default_factory=list)

    @property
    def max_tokens(self) -> int:
        return RESPONSE_TOKEN_BUDGETS[self.response_length]

    def get_step(self, step_id: str) -> CoachingStepData:
        step = self.coaching_steps.get(StepId(step_id))
        if step is None:
            raise UnknownStepError(step_id)
        return step

    def validate_steps(self) -> None:
        """Raise StepConfigurationError if step_order and coaching_steps disagree."""
        seen = set()
        for step_id in self.step_order:
            if step_id in seen:
                raise StepConfigurationError(f'Étape en double dans l\'ordre: {step_id}')
            seen.add(step_id)
            if step_id not in self.coaching_steps:
                raise UnknownStepError(step_id)


class AISettingsUpdate(BaseModel):
    """Partial settings as sent by the settings form; unset fields are kept."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    use_tutoiement: Optional[bool] = None
    custom_instructions: Optional[str] = None
    tonality: Optional[str] = None
    max_follow_ups: Optional[int] = Field(None, ge=0, le=MAX_FOLLOW_UPS_LIMIT)
    bold_words: Optional[bool] = None
    response_length: Optional[ResponseLength] = None
    coaching_steps: Optional[Dict[StepId, CoachingStepData]] = None
    step_order: Optional[List[StepId]] = None


def default_settings() -> AISettings:
    return AISettings()


def update_settings(
    current: AISettings,
    patch: Union[AISettingsUpdate, Mapping[str, Any]],
) -> AISettings:
    """Merge ``patch`` over ``current``: present fields replace, absent ones are kept."""
    if not isinstance(patch, AISettingsUpdate):
        patch = AISettingsUpdate.model_validate(patch)
    changes = patch.model_dump(exclude_unset=True)
    merged = current.model_dump()
    merged.update(changes)
    return AISettings.model_validate(merged)


# ---------------------------------------------------------------------------
# Step editing
# ---------------------------------------------------------------------------

def _require_step(settings: AISettings, step_id: str) -> CoachingStepData:
    return settings.get_step(step_id)


def add_step(settings: AISettings) -> AISettings:
    new_id = next_step_id(list(settings.coaching_steps) + list(settings.step_order))
    updated = settings.model_copy(deep=True)
    updated.coaching_steps[new_id] = CoachingStepData(
        title=NEW_STEP_TITLE, description='', questions=[''],
    )
    updated.step_order.append(new_id)
    return updated


def delete_step(settings: AISettings, step_id: str) -> AISettings:
    _require_step(settings, step_id)
    updated = settings.model_copy(deep=True)
    del updated.coaching_steps[StepId(step_id)]
    updated.step_order = [s for s in updated.step_order if s != step_id]
    return updated


def move_step(settings: AISettings, index: int, direction: Literal['up', 'down']) -> AISettings:
    new_index = index - 1 if direction == 'up' else index + 1
    if not (0 <= index < len(settings.step_order)) or not (0 <= new_index < len(settings.step_order)):
        return settings
    updated = settings.model_copy(deep=True)
    order = updated.step_order
    order[index], order[new_index] = order[new_index], order[index]
    return updated


def update_step(settings: AISettings, step_id: str, **fields: Any) -> AISettings:
    step = _require_step(settings, step_id)
    updated = settings.model_copy(deep=True)
    updated.coaching_steps[StepId(step_id)] = CoachingStepData.model_validate(
        {**step.model_dump(), **fields}
    )
    return updated


def add_question(settings: AISettings, step_id: str) -> AISettings:
    step = _require_step(settings, step_id)
    # main question + max_follow_ups follow-ups
    if len(step.questions) >= settings.max_follow_ups + 1:
        return settings
    return update_step(settings, step_id, questions=[*step.questions, NEW_FOLLOW_UP_QUESTION])


def remove_question(settings: AISettings, step_id: str, index: int) -> AISettings:
    step = _require_step(settings, step_id)
    if len(step.questions) <= 1 or not (0 <= index < len(step.questions)):
        return settings
    questions = [q for i, q in enumerate(step.questions) if i != index]
    return update_step(settings, step_id, questions=questions)
