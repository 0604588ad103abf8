"""
Coaching progress tracker.

A small state machine over an explicit step order:

    at-step(s) x {blocked, unblocked}  ->  complete

``complete_step`` unblocks the current step when the assistant signals it
is done; ``move_to_next_step`` advances only while unblocked.  Completion
signals for any other step are stale and ignored.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from mission_coach.core.errors import EmptyStepOrderError
from mission_coach.services.coaching.settings import AISettings
from mission_coach.services.coaching.steps import StepId

logger = logging.getLogger(__name__)


@dataclass
class CoachingProgress:
    current_step: StepId
    # Append-only; may hold repeats across resets of the same session
    completed_steps: List[StepId] = field(default_factory=list)
    is_complete: bool = False


class CoachingProgressTracker:
    """Tracks which coaching step is active and which are done."""

    def __init__(self, step_order: Sequence[str]) -> None:
        self._step_order: List[StepId] = [StepId(s) for s in step_order]
        if not self._step_order:
            raise EmptyStepOrderError()
        self._progress = CoachingProgress(current_step=self._step_order[0])
        self.can_proceed_to_next = False

    @classmethod
    def for_settings(cls, settings: AISettings) -> 'CoachingProgressTracker':
        settings.validate_steps()
        return cls(settings.step_order)

    # -- read-only views ----------------------------------------------------

    @property
    def step_order(self) -> List[StepId]:
        return list(self._step_order)

    @property
    def current_step(self) -> StepId:
        return self._progress.current_step

    @property
    def completed_steps(self) -> List[StepId]:
        return list(self._progress.completed_steps)

    @property
    def is_complete(self) -> bool:
        return self._progress.is_complete

    @property
    def step_number(self) -> int:
        return self._step_order.index(self._progress.current_step) + 1

    @property
    def total_steps(self) -> int:
        return len(self._step_order)

    @property
    def completion_ratio(self) -> float:
        return min(1.0, len(self._progress.completed_steps) / len(self._step_order))

    def snapshot(self) -> CoachingProgress:
        return CoachingProgress(
            current_step=self._progress.current_step,
            completed_steps=list(self._progress.completed_steps),
            is_complete=self._progress.is_complete,
        )

    # -- transitions --------------------------------------------------------

    def complete_step(self, step: str) -> bool:
        """Unblock the current step. Returns False for stale or late signals."""
        if self._progress.is_complete or step != self._progress.current_step:
            logger.debug(
                'Ignoring completion signal for %s (current=%s, complete=%s)',
                step, self._progress.current_step, self._progress.is_complete,
            )
            return False
        self.can_proceed_to_next = True
        return True

    def move_to_next_step(self) -> bool:
        """Advance past an unblocked step. Returns whether the state changed."""
        if not self.can_proceed_to_next or self._progress.is_complete:
            return False

        previous = self._progress.current_step
        index = self._step_order.index(previous)
        self._progress.completed_steps.append(previous)

        if index < len(self._step_order) - 1:
            self._progress.current_step = self._step_order[index + 1]
            self.can_proceed_to_next = False
            logger.info('Coaching step %s -> %s', previous, self._progress.current_step)
        else:
            # Terminal: current_step stays on the last step
            self._progress.is_complete = True
            logger.info('Coaching sequence complete after %s', previous)
        return True

    def reset_progress(self) -> None:
        if not self._step_order:
            raise EmptyStepOrderError()
        self._progress = CoachingProgress(current_step=self._step_order[0])
        self.can_proceed_to_next = False

    def set_step_order(self, step_order: Sequence[str]) -> None:
        """Swap in a new traversal order, resetting if the current step vanished."""
        new_order = [StepId(s) for s in step_order]
        if not new_order:
            raise EmptyStepOrderError()
        self._step_order = new_order
        if self._progress.current_step not in new_order:
            logger.info('Current step %s removed from order; resetting progress',
                        self._progress.current_step)
            self.reset_progress()
        elif self._progress.is_complete and self._progress.current_step != new_order[-1]:
            self._progress.current_step = new_order[-1]
