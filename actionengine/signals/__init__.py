"""Signal layer - timers, raw activity collection and recent event history

Components:
    scheduler.py: the one cooperative scheduler that owns every timer
    collector.py: turns raw surface activity into debounced ActionEvents
    history.py: bounded buffer of recent ActionEvents
"""

# Raw surface events that count as activity
ACTIVITY_EVENTS = ("input", "keydown", "pointermove", "click", "scroll", "focus")

# Raw surface events that count as typing
TYPING_EVENTS = ("input", "keydown")

__all__ = ["ACTIVITY_EVENTS", "TYPING_EVENTS"]
