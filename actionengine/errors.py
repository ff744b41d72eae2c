"""
Action Engine error taxonomy.

InvalidTransition and SequenceUnavailable reach the caller of the Flow Runner
and leave the state machine unchanged. PersistenceMirrorFailure is raised by
mirror clients and logged by the runner; it never rolls back local state.
LockConflict marks a single-writer violation on the focus lock.
"""

from __future__ import annotations


class ActionEngineError(Exception):
    """Base class for all Action Engine errors."""


class InvalidTransition(ActionEngineError):
    """A Flow Runner operation was called from a state that forbids it."""

    def __init__(self, operation: str, state: str, detail: str | None = None):
        self.operation = operation
        self.state = state
        message = f"Cannot {operation} while {state}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class SequenceUnavailable(ActionEngineError):
    """The recommendation service returned nothing usable for a start."""


class RecommendationError(ActionEngineError):
    """The recommendation service call failed."""


class LockConflict(ActionEngineError):
    """A focus lock acquire found a different task holding the lock."""

    def __init__(self, requested: str, holder: str):
        self.requested = requested
        self.holder = holder
        super().__init__(f"Focus lock held by {holder!r}, cannot lock {requested!r}")


class PersistenceMirrorFailure(ActionEngineError):
    """Best-effort remote mirroring of a session event failed."""

    def __init__(self, kind: str, session_id: str, reason: str):
        self.kind = kind
        self.session_id = session_id
        self.reason = reason
        super().__init__(f"Mirroring '{kind}' for session {session_id} failed: {reason}")


__all__ = [
    "ActionEngineError",
    "InvalidTransition",
    "LockConflict",
    "PersistenceMirrorFailure",
    "RecommendationError",
    "SequenceUnavailable",
]
