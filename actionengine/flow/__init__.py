"""Flow Mode - one task at a time, in a fixed order, with a focus lock

Components:
    focus_lock.py: single-slot lock naming the task the user may not leave
    runner.py: the Flow session state machine
    debrief.py: end-of-session summary
"""

from enum import StrEnum


class FlowState(StrEnum):
    IDLE = "idle"
    STARTING = "starting"
    TASK_ACTIVE = "task_active"
    TASK_COMPLETING = "task_completing"
    TASK_SKIPPING = "task_skipping"
    SESSION_COMPLETE = "session_complete"
    STOPPING = "stopping"


__all__ = ["FlowState"]
