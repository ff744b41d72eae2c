"""
Tool: Session Debrief
Purpose: Summarize a finished Flow session in a few short lines

Highlights are wins only: one line per completed task, in the order they
were completed. Insights are observations, and each one appears only when
its signal exists. No placeholder lines: a session with nothing completed
has no highlights, and a quiet session has no insights.

Usage:
    debrief = synthesize(session, history, SessionOutcome.STOPPED)
"""

from __future__ import annotations

from datetime import datetime

from actionengine.models import (
    FlowSession,
    SessionDebrief,
    SessionOutcome,
    TaskOutcome,
    utcnow,
)
from actionengine.signals.history import EventHistory

IDLE_KINDS = ("note_idle", "app_idle")


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def format_span(seconds: float) -> str:
    seconds = int(round(seconds))
    if seconds < 60:
        return f"{seconds}s"
    minutes, rest = divmod(seconds, 60)
    return f"{minutes}m {rest}s" if rest else f"{minutes}m"


def _highlights(session: FlowSession) -> list[str]:
    lines = []
    for record in session.outcomes:
        if record.outcome is not TaskOutcome.COMPLETED:
            continue
        task = session.task_by_id(record.task_id)
        if task is None:
            lines.append(f"Completed {record.task_id}")
        else:
            lines.append(f"Completed '{task.title}' ({task.duration_minutes} min)")
    return lines


def _insights(
    session: FlowSession,
    history: EventHistory,
    outcome: SessionOutcome,
    end: datetime,
) -> list[str]:
    lines = []

    skipped = len(session.skipped_task_ids)
    if skipped:
        lines.append(f"{_plural(skipped, 'task')} skipped")

    remaining = len(session.remaining_tasks)
    if outcome is not SessionOutcome.COMPLETED and remaining:
        lines.append(f"Stopped early with {_plural(remaining, 'task')} still planned")

    if session.completed_task_ids:
        done = sum(
            t.duration_minutes for t in session.sequence if t.id in session.completed_task_ids
        )
        lines.append(f"Finished {done} of {session.total_duration} planned minutes")

    in_session = [e for e in history.recent(since=session.started_at) if e.timestamp <= end]

    switches = sum(1 for e in in_session if e.kind == "task_switched")
    if switches:
        lines.append(f"Switched tasks {_plural(switches, 'time')}")

    idle_spans = []
    for event in in_session:
        if event.kind not in IDLE_KINDS:
            continue
        try:
            idle_spans.append(float(event.get("duration", 0) or 0))
        except (TypeError, ValueError):
            continue
    longest = max(idle_spans, default=0.0)
    if longest > 0:
        lines.append(f"Longest idle gap: {format_span(longest)}")

    nudges = sum(1 for e in in_session if e.kind == "nudge_shown")
    if nudges:
        lines.append(f"{_plural(nudges, 'coaching nudge')} along the way")

    return lines


def synthesize(
    session: FlowSession,
    history: EventHistory,
    outcome: SessionOutcome = SessionOutcome.COMPLETED,
    now: datetime | None = None,
) -> SessionDebrief:
    end = session.ended_at or now or utcnow()
    return SessionDebrief(
        highlights=tuple(_highlights(session)),
        insights=tuple(_insights(session, history, outcome, end)),
        session_id=session.session_id,
        created_at=end,
    )
