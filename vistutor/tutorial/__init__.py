#!/usr/bin/env python3
"""
Tutorial sessions: documents of narrative sections with runnable exercises.

Sections unlock progressively as the learner completes them; exercises run
in an isolated namespace against read-only datasets.
"""

from .state import (
    ExerciseStatus,
    LockState,
    OutputKind,
    Output,
    ExecutionFault,
    ExerciseBlock,
    Section,
    LearnerState,
    TransitionResult,
    ProgressSummary,
)
from .datasets import DatasetContext, load_dataset, list_builtin_datasets
from .document import (
    Document,
    load_document,
    load_document_file,
    load_builtin_document,
    list_builtin_documents,
    resolve_document,
    parse_markdown,
)
from .sandbox import Sandbox
from .controller import TutorialController

__all__ = [
    'ExerciseStatus',
    'LockState',
    'OutputKind',
    'Output',
    'ExecutionFault',
    'ExerciseBlock',
    'Section',
    'LearnerState',
    'TransitionResult',
    'ProgressSummary',
    'DatasetContext',
    'load_dataset',
    'list_builtin_datasets',
    'Document',
    'load_document',
    'load_document_file',
    'load_builtin_document',
    'list_builtin_documents',
    'resolve_document',
    'parse_markdown',
    'Sandbox',
    'TutorialController',
]
