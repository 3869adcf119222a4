#!/usr/bin/env python3
"""
TutorialController - owns a loaded document, gates sections on learner
progress and runs exercise submissions through the sandbox.
"""

import logging
import threading
from typing import Any, List, Optional, Union

from ..errors import InvalidTransition, UnknownExercise
from .document import Document, load_document
from .sandbox import DEFAULT_TIMEOUT, Sandbox
from .state import (
    ExecutionFault,
    ExerciseBlock,
    ExerciseStatus,
    LearnerState,
    LockState,
    Output,
    ProgressSummary,
    Section,
    TransitionResult,
)

logger = logging.getLogger(__name__)


class TutorialController:
    """Progressive section unlocking plus the submit/reset cycle for exercises"""

    def __init__(
        self,
        document: Document,
        progressive: Optional[bool] = None,
        allow_skip: Optional[bool] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.document = document
        self.progressive = document.progressive if progressive is None else progressive
        self.allow_skip = document.allow_skip if allow_skip is None else allow_skip
        self.sandbox = Sandbox(document.datasets, setup_code=document.setup, timeout=timeout)
        self._state_lock = threading.Lock()

    @classmethod
    def from_spec(cls, spec: Any, **kwargs) -> 'TutorialController':
        """Load a document specification and wrap it"""
        return cls(load_document(spec), **kwargs)

    # === Sections ===

    def new_learner_state(self) -> LearnerState:
        """Fresh progress: first section only, or everything when not progressive"""
        ids = self.document.section_ids
        if not self.progressive:
            return LearnerState(unlocked=set(ids))
        return LearnerState(unlocked={ids[0]})

    def _require_section(self, section_id: str) -> Section:
        section = self.document.get_section(section_id)
        if section is None:
            raise InvalidTransition(f"Unknown section: {section_id}")
        return section

    def lock_state(self, state: LearnerState, section_id: str) -> LockState:
        self._require_section(section_id)
        return LockState.UNLOCKED if state.is_unlocked(section_id) else LockState.LOCKED

    def visible_sections(self, state: LearnerState) -> List[Section]:
        """Unlocked sections in document order"""
        return [section for section in self.document.sections if state.is_unlocked(section.id)]

    def _unlock_next(self, state: LearnerState, section_id: str) -> Optional[str]:
        following = self.document.next_section(section_id)
        if following is None or state.is_unlocked(following.id):
            return None
        state.unlocked.add(following.id)
        return following.id

    def advance(self, state: LearnerState, section_id: str) -> TransitionResult:
        """
        Mark a section complete and unlock the one after it.

        Advancing a section whose successor is already unlocked is a no-op
        that still succeeds.

        Raises:
            InvalidTransition: Unknown section, or a section still locked
        """
        self._require_section(section_id)
        with self._state_lock:
            if not state.is_unlocked(section_id):
                raise InvalidTransition(f"Section '{section_id}' is locked")

            changed = section_id not in state.completed
            state.completed.add(section_id)
            unlocked = self._unlock_next(state, section_id) if self.progressive else None

        if unlocked:
            logger.info("Section %s complete; unlocked %s", section_id, unlocked)
        return TransitionResult(section_id=section_id, unlocked=unlocked, changed=changed or unlocked is not None)

    def skip(self, state: LearnerState, section_id: str) -> TransitionResult:
        """Unlock the next section without completing this one"""
        if not self.allow_skip:
            raise InvalidTransition("Skipping sections is disabled for this tutorial")
        self._require_section(section_id)
        with self._state_lock:
            if not state.is_unlocked(section_id):
                raise InvalidTransition(f"Section '{section_id}' is locked")
            changed = section_id not in state.skipped and section_id not in state.completed
            if section_id not in state.completed:
                state.skipped.add(section_id)
            unlocked = self._unlock_next(state, section_id)

        logger.info("Section %s skipped", section_id)
        return TransitionResult(section_id=section_id, unlocked=unlocked, changed=changed or unlocked is not None)

    # === Exercises ===

    def get_exercise(self, exercise_id: str) -> ExerciseBlock:
        exercise = self.document.get_exercise(exercise_id)
        if exercise is None:
            raise UnknownExercise(f"Unknown exercise: {exercise_id}")
        return exercise

    def submit(self, exercise_id: str, new_code: str) -> Union[Output, ExecutionFault]:
        """
        Replace an exercise's code and run it.

        A failed run keeps the previous output. Submitting to a block that
        is already running returns a fault and leaves the block alone.

        Returns:
            The new Output, or the ExecutionFault describing the failure
        """
        exercise = self.get_exercise(exercise_id)
        with exercise.lock:
            if exercise.status == ExerciseStatus.RUNNING:
                return ExecutionFault(
                    message=f"Exercise '{exercise_id}' is still running",
                    error_type='Busy',
                )
            exercise.code = new_code
            if exercise.status != ExerciseStatus.IDLE:
                exercise.transition(ExerciseStatus.IDLE)
            exercise.transition(ExerciseStatus.RUNNING)

        logger.debug("Running exercise %s", exercise_id)
        try:
            result = self.sandbox.run(new_code, exercise_id)
        except Exception as e:
            logger.exception("Sandbox error while running %s", exercise_id)
            result = ExecutionFault(message=str(e), error_type=type(e).__name__)

        with exercise.lock:
            if isinstance(result, ExecutionFault):
                exercise.fault = result
                exercise.transition(ExerciseStatus.FAILED)
                logger.info("Exercise %s failed: %s", exercise_id, result.describe())
            else:
                exercise.output = result
                exercise.fault = None
                exercise.transition(ExerciseStatus.SUCCEEDED)
                logger.info("Exercise %s produced %s output", exercise_id, result.kind.value)
        return result

    def rerun(self, exercise_id: str) -> Union[Output, ExecutionFault]:
        """Submit the exercise's current code again"""
        return self.submit(exercise_id, self.get_exercise(exercise_id).code)

    def reset(self, exercise_id: str) -> ExerciseBlock:
        """Restore the authored code and clear output and status"""
        exercise = self.get_exercise(exercise_id)
        with exercise.lock:
            if exercise.status == ExerciseStatus.RUNNING:
                raise InvalidTransition(f"Exercise '{exercise_id}' is running and cannot be reset")
            exercise.restore_default()
        return exercise

    def hint(self, exercise_id: str) -> Optional[str]:
        return self.get_exercise(exercise_id).hint

    def solution(self, exercise_id: str) -> Optional[str]:
        return self.get_exercise(exercise_id).solution

    # === Progress ===

    def progress(self, state: LearnerState) -> ProgressSummary:
        exercises = list(self.document.exercises())
        return ProgressSummary(
            total_sections=len(self.document.sections),
            unlocked_sections=sum(1 for s in self.document.sections if state.is_unlocked(s.id)),
            completed_sections=sum(1 for s in self.document.sections if s.id in state.completed),
            total_exercises=len(exercises),
            succeeded_exercises=sum(1 for e in exercises if e.status == ExerciseStatus.SUCCEEDED),
            failed_exercises=sum(1 for e in exercises if e.status == ExerciseStatus.FAILED),
        )
