"""Nudge layer - classify signals into coaching nudges and keep them live

Components:
    classifier.py: threshold rules mapping ActionEvents to Nudges
    board.py: live nudges (one per type, TTL expiry) and the micro-flow slot
"""

# Event kinds produced inside the engine that never count as user activity
INTERNAL_EVENT_KINDS = frozenset({"nudge_shown", "nudge_dismissed"})

__all__ = ["INTERNAL_EVENT_KINDS"]
