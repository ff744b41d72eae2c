"""
Tool: Nudge Classifier
Purpose: Map behavioral signals to ONE coaching nudge, or nothing

Each event kind has an ordered tuple of rules; the first rule that matches
wins, and kinds without rules classify to None. Rules only read the event and
the snapshot (focus lock, Flow session, recent history), so classification
has no side effects. Publishing the nudge is the board's job.

Rules by event kind:
    task_switched              -> task_switching_excessive, avoid_switching
    note_idle                  -> start_small, hesitation
    note_edited                -> over_edit
    app_idle                   -> stall
    task_completed / timer_completed -> take_micro_break, momentum
    flow_session_skipped_task  -> clarify_blocker

The periodic ambient check (classify_ambient) flags a stall when the active
Flow task has overrun its planned time and nothing has happened for a while.

Usage:
    classifier = NudgeClassifier(config.nudges)
    nudge = classifier.classify(event, snapshot)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from actionengine.config import NudgeConfig
from actionengine.models import (
    ActionEvent,
    FlowSession,
    FocusLockState,
    Nudge,
    NudgeType,
    new_id,
)
from actionengine.nudges import INTERNAL_EVENT_KINDS
from actionengine.signals.history import EventHistory

logger = logging.getLogger(__name__)

COMPLETION_KINDS = ("task_completed", "timer_completed")
FLOW_OUTCOME_KINDS = ("timer_completed", "flow_session_skipped_task")


@dataclass(frozen=True)
class ClassifierSnapshot:
    now: datetime
    focus_lock: FocusLockState
    session: FlowSession | None
    history: EventHistory

    def task_title(self, task_id: str | None) -> str:
        if task_id and self.session:
            task = self.session.task_by_id(task_id)
            if task:
                return task.title
        return "this task"


@dataclass(frozen=True)
class NudgeTemplate:
    """Intermediate representation produced by rules."""

    type: NudgeType
    message: str
    subject_id: str | None = None
    ttl_seconds: float | None = None


Rule = Callable[[ActionEvent, ClassifierSnapshot, NudgeConfig], "NudgeTemplate | None"]


def _subject(event: ActionEvent) -> str | None:
    task_id = event.get("task_id")
    return str(task_id) if task_id else event.subject_id


# =============================================================================
# task_switched
# =============================================================================


def excessive_switching_rule(event: ActionEvent, snap: ClassifierSnapshot, cfg: NudgeConfig) -> NudgeTemplate | None:
    since = snap.now - timedelta(minutes=cfg.switch_window_minutes)
    switches = len(snap.history.recent("task_switched", since=since))
    if switches <= cfg.switch_threshold:
        return None
    return NudgeTemplate(
        type=NudgeType.TASK_SWITCHING_EXCESSIVE,
        message=(
            f"That's {switches} switches in {cfg.switch_window_minutes:g} minutes. "
            "Pick one task and give it five minutes."
        ),
        subject_id=snap.focus_lock.task_id,
    )


def avoid_switching_rule(event: ActionEvent, snap: ClassifierSnapshot, cfg: NudgeConfig) -> NudgeTemplate | None:
    locked = snap.focus_lock.task_id
    from_task = event.get("from_task_id") or event.subject_id
    if not locked or from_task != locked:
        return None
    return NudgeTemplate(
        type=NudgeType.AVOID_SWITCHING,
        message=f"Finish '{snap.task_title(locked)}' before switching. You're in Flow.",
        subject_id=locked,
    )


# =============================================================================
# note_idle / note_edited
# =============================================================================


def idle_after_open_rule(event: ActionEvent, snap: ClassifierSnapshot, cfg: NudgeConfig) -> NudgeTemplate | None:
    task_id = _subject(event)
    opened = snap.history.last("task_opened", subject_id=task_id)
    since = opened.timestamp if opened else None
    edits = snap.history.recent("note_edited", since=since, subject_id=task_id)
    if edits:
        return NudgeTemplate(
            type=NudgeType.HESITATION,
            message="Stuck? Write down what's in the way, one line is enough.",
            subject_id=task_id,
        )
    return NudgeTemplate(
        type=NudgeType.START_SMALL,
        message="Start small: write one messy sentence about the first step.",
        subject_id=task_id,
    )


def over_edit_rule(event: ActionEvent, snap: ClassifierSnapshot, cfg: NudgeConfig) -> NudgeTemplate | None:
    task_id = _subject(event)
    since = snap.now - timedelta(seconds=cfg.over_edit_window_seconds)
    edits = snap.history.recent("note_edited", since=since, subject_id=task_id)
    if len(edits) < cfg.over_edit_count:
        return None
    if snap.history.recent(COMPLETION_KINDS, since=since, subject_id=task_id):
        return None
    return NudgeTemplate(
        type=NudgeType.OVER_EDIT,
        message="This is good enough. Mark it done and move on.",
        subject_id=task_id,
    )


# =============================================================================
# app_idle
# =============================================================================


def stall_rule(event: ActionEvent, snap: ClassifierSnapshot, cfg: NudgeConfig) -> NudgeTemplate | None:
    locked = snap.focus_lock.task_id
    if not locked:
        return None
    try:
        idle_seconds = float(event.get("duration", 0) or 0)
    except (TypeError, ValueError):
        return None
    if idle_seconds < cfg.stall_idle_seconds:
        return None
    return NudgeTemplate(
        type=NudgeType.STALL,
        message=f"Still with '{snap.task_title(locked)}'? Do the smallest next step, or skip it.",
        subject_id=locked,
    )


# =============================================================================
# task_completed / timer_completed
# =============================================================================


def micro_break_rule(event: ActionEvent, snap: ClassifierSnapshot, cfg: NudgeConfig) -> NudgeTemplate | None:
    if snap.session is None or snap.session.ended_at is not None:
        return None
    last_break = snap.session.started_at
    for shown in snap.history.recent("nudge_shown", since=snap.session.started_at):
        if shown.get("type") == NudgeType.TAKE_MICRO_BREAK.value:
            last_break = max(last_break, shown.timestamp)
    for taken in snap.history.recent("break_taken", since=snap.session.started_at):
        last_break = max(last_break, taken.timestamp)

    worked = snap.now - last_break
    if worked < timedelta(minutes=cfg.micro_break_after_minutes):
        return None
    minutes = int(worked.total_seconds() // 60)
    return NudgeTemplate(
        type=NudgeType.TAKE_MICRO_BREAK,
        message=f"{minutes} minutes of focus. Stand up and stretch for two minutes.",
    )


def momentum_rule(event: ActionEvent, snap: ClassifierSnapshot, cfg: NudgeConfig) -> NudgeTemplate | None:
    since = snap.now - timedelta(minutes=cfg.momentum_window_minutes)
    done = len(snap.history.recent(COMPLETION_KINDS, since=since))
    if done < cfg.momentum_count:
        return None
    return NudgeTemplate(
        type=NudgeType.MOMENTUM,
        message=f"{done} done in {cfg.momentum_window_minutes:g} minutes. Keep riding it.",
    )


# =============================================================================
# flow_session_skipped_task
# =============================================================================


def clarify_blocker_rule(event: ActionEvent, snap: ClassifierSnapshot, cfg: NudgeConfig) -> NudgeTemplate | None:
    since = snap.session.started_at if snap.session else None
    outcomes = snap.history.recent(FLOW_OUTCOME_KINDS, since=since)
    streak = 0
    for outcome in reversed(outcomes):
        if outcome.kind != "flow_session_skipped_task":
            break
        streak += 1
    if streak < cfg.skip_streak:
        return None
    return NudgeTemplate(
        type=NudgeType.CLARIFY_BLOCKER,
        message=f"{streak} skips in a row. What's blocking you? Name it in one line.",
        subject_id=_subject(event),
    )


DEFAULT_RULES: dict[str, tuple[Rule, ...]] = {
    "task_switched": (excessive_switching_rule, avoid_switching_rule),
    "note_idle": (idle_after_open_rule,),
    "note_edited": (over_edit_rule,),
    "app_idle": (stall_rule,),
    "task_completed": (micro_break_rule, momentum_rule),
    "timer_completed": (micro_break_rule, momentum_rule),
    "flow_session_skipped_task": (clarify_blocker_rule,),
}


class NudgeClassifier:
    """Evaluates events against the rule table."""

    def __init__(self, config: NudgeConfig | None = None, rules: dict[str, tuple[Rule, ...]] | None = None) -> None:
        self.config = config or NudgeConfig()
        self.rules = dict(DEFAULT_RULES if rules is None else rules)

    def classify(self, event: ActionEvent, snapshot: ClassifierSnapshot) -> Nudge | None:
        for rule in self.rules.get(event.kind, ()):
            try:
                template = rule(event, snapshot, self.config)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.debug(f"Rule {rule.__name__} rejected malformed {event.kind!r} event: {e}")
                return None
            if template is not None:
                return self._build(template, snapshot.now)
        return None

    def classify_ambient(self, snapshot: ClassifierSnapshot) -> Nudge | None:
        """Periodic check against state alone: overrun plus silence is a stall."""
        session = snapshot.session
        locked = snapshot.focus_lock.task_id
        if session is None or not locked:
            return None
        task = session.current_task
        if task is None or task.id != locked or task.duration_minutes <= 0:
            return None

        task_started = session.outcomes[-1].at if session.outcomes else session.started_at
        planned = timedelta(minutes=task.duration_minutes * self.config.stall_overrun_factor)
        if snapshot.now - task_started < planned:
            return None

        last_activity = task_started
        for event in snapshot.history.recent(since=task_started):
            if event.kind not in INTERNAL_EVENT_KINDS:
                last_activity = max(last_activity, event.timestamp)
        if (snapshot.now - last_activity).total_seconds() < self.config.stall_idle_seconds:
            return None
        # Once per silent stretch
        for shown in snapshot.history.recent("nudge_shown", since=last_activity):
            if shown.get("type") == NudgeType.STALL.value:
                return None

        return self._build(
            NudgeTemplate(
                type=NudgeType.STALL,
                message=f"'{task.title}' is running long. Wrap up the smallest piece, or skip it.",
                subject_id=task.id,
            ),
            snapshot.now,
        )

    def _build(self, template: NudgeTemplate, now: datetime) -> Nudge:
        return Nudge(
            id=new_id("ndg"),
            type=template.type,
            message=template.message,
            created_at=now,
            ttl_seconds=template.ttl_seconds or self.config.default_ttl_seconds,
            subject_id=template.subject_id,
        )
