#!/usr/bin/env python3
"""
State for tutorial sessions.
Tracks section lock state, exercise execution status and outputs.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from ..errors import InvalidTransition


class ExerciseStatus(Enum):
    """Execution status of an exercise block"""
    IDLE = 'idle'
    RUNNING = 'running'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'


class LockState(Enum):
    """Whether a learner can see a section"""
    LOCKED = 'locked'
    UNLOCKED = 'unlocked'


class OutputKind(Enum):
    """What an exercise produced"""
    TEXT = 'text'
    TABLE = 'table'
    IMAGE = 'image'      # PNG bytes
    WIDGET = 'widget'    # opaque WidgetHandle


# Allowed status moves; a finished block goes back to idle before rerunning
STATUS_TRANSITIONS = {
    ExerciseStatus.IDLE: {ExerciseStatus.RUNNING},
    ExerciseStatus.RUNNING: {ExerciseStatus.SUCCEEDED, ExerciseStatus.FAILED},
    ExerciseStatus.SUCCEEDED: {ExerciseStatus.IDLE},
    ExerciseStatus.FAILED: {ExerciseStatus.IDLE},
}


@dataclass
class Output:
    """Result of a successful exercise run"""
    kind: OutputKind
    value: Any
    stdout: str = ''
    warnings: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        """Succeeded, but the libraries complained along the way"""
        return bool(self.warnings)

    @classmethod
    def text(cls, value: str, stdout: str = '') -> 'Output':
        return cls(kind=OutputKind.TEXT, value=value, stdout=stdout)


@dataclass
class ExecutionFault:
    """Why an exercise run failed"""
    message: str
    line: Optional[int] = None
    error_type: str = ''
    stdout: str = ''

    def describe(self) -> str:
        """One-line description for inline display"""
        where = f" (line {self.line})" if self.line else ''
        prefix = f"{self.error_type}: " if self.error_type else ''
        return f"{prefix}{self.message}{where}"


@dataclass
class ExerciseBlock:
    """An editable code fragment embedded in a section"""
    id: str
    section_id: str
    default_code: str
    code: str = ''
    hint: Optional[str] = None
    solution: Optional[str] = None
    datasets: List[str] = field(default_factory=list)  # declared references
    status: ExerciseStatus = ExerciseStatus.IDLE
    output: Optional[Output] = None
    fault: Optional[ExecutionFault] = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __post_init__(self):
        if not self.code:
            self.code = self.default_code

    def transition(self, new_status: ExerciseStatus):
        """Move to a new status, rejecting moves outside the lifecycle"""
        if new_status not in STATUS_TRANSITIONS[self.status]:
            raise InvalidTransition(
                f"Exercise '{self.id}' cannot go from {self.status.value} to {new_status.value}"
            )
        self.status = new_status

    def restore_default(self):
        """Back to the authored code with no output"""
        self.code = self.default_code
        self.status = ExerciseStatus.IDLE
        self.output = None
        self.fault = None

    @property
    def edited(self) -> bool:
        return self.code != self.default_code


@dataclass
class Section:
    """One narrative section of a tutorial"""
    id: str
    title: str
    position: int
    narrative: str = ''
    exercises: List[ExerciseBlock] = field(default_factory=list)

    def get_exercise(self, exercise_id: str) -> Optional[ExerciseBlock]:
        for exercise in self.exercises:
            if exercise.id == exercise_id:
                return exercise
        return None


@dataclass
class LearnerState:
    """Which sections a learner has unlocked, completed or skipped"""
    unlocked: Set[str] = field(default_factory=set)
    completed: Set[str] = field(default_factory=set)
    skipped: Set[str] = field(default_factory=set)

    def is_unlocked(self, section_id: str) -> bool:
        return section_id in self.unlocked

    def lock_states(self, section_ids: List[str]) -> Dict[str, LockState]:
        """Lock state per section, in the order given"""
        return {
            section_id: LockState.UNLOCKED if section_id in self.unlocked else LockState.LOCKED
            for section_id in section_ids
        }


@dataclass
class TransitionResult:
    """Outcome of advancing or skipping a section"""
    section_id: str
    unlocked: Optional[str] = None   # section newly unlocked, if any
    changed: bool = False


@dataclass
class ProgressSummary:
    """Counts for progress display"""
    total_sections: int
    unlocked_sections: int
    completed_sections: int
    total_exercises: int
    succeeded_exercises: int
    failed_exercises: int

    def completion_rate(self) -> float:
        """Share of sections completed"""
        return self.completed_sections / self.total_sections if self.total_sections > 0 else 1.0
