#!/usr/bin/env python3
"""
Error types for the tutorial runner.
"""


class VistutorError(Exception):
    """Base class for tutorial runner errors"""


class LoadError(VistutorError):
    """The tutorial document specification is malformed"""


class InvalidTransition(VistutorError):
    """A section or exercise state change that is not allowed"""


class UnknownExercise(VistutorError, KeyError):
    """No exercise block with the requested id"""

    def __str__(self):
        return Exception.__str__(self)
