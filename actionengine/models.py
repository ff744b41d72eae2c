"""
Action Engine Data Structures

Plain dataclasses shared by every component. Events, nudges, tasks and
debriefs are frozen once created; FlowSession is the only mutable record and
is written exclusively by the Flow Runner.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import StrEnum
from types import MappingProxyType
from typing import Any


Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class ActionEvent:
    """A timestamped interaction signal. Never mutated after creation."""

    kind: str
    timestamp: datetime
    subject_id: str | None = None
    payload: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload or {})))

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "timestamp": self.timestamp.isoformat(),
            "subject_id": self.subject_id,
            "payload": dict(self.payload),
        }


# =============================================================================
# Nudges
# =============================================================================


class NudgeType(StrEnum):
    """Closed set of coaching interventions."""

    START_SMALL = "start_small"
    AVOID_SWITCHING = "avoid_switching"
    TAKE_MICRO_BREAK = "take_micro_break"
    HESITATION = "hesitation"
    OVER_EDIT = "over_edit"
    STALL = "stall"
    TASK_SWITCHING_EXCESSIVE = "task_switching_excessive"
    CLARIFY_BLOCKER = "clarify_blocker"
    MOMENTUM = "momentum"


@dataclass(frozen=True)
class Nudge:
    id: str
    type: NudgeType
    message: str
    created_at: datetime
    ttl_seconds: float
    subject_id: str | None = None

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(seconds=self.ttl_seconds)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
            "ttl_seconds": self.ttl_seconds,
            "subject_id": self.subject_id,
        }


@dataclass(frozen=True)
class MicroFlow:
    """A short, dismissible step list offered alongside a nudge."""

    id: str
    title: str
    steps: tuple[str, ...]
    created_at: datetime


# =============================================================================
# Focus lock
# =============================================================================


@dataclass(frozen=True)
class FocusLockState:
    task_id: str | None = None
    locked_at: datetime | None = None

    @property
    def locked(self) -> bool:
        return self.task_id is not None


# =============================================================================
# Flow Mode
# =============================================================================


@dataclass(frozen=True)
class FlowTask:
    id: str
    title: str
    duration_minutes: int
    order: int
    reason: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], order: int | None = None) -> "FlowTask":
        """Build from a service payload (camelCase or snake_case keys)."""
        duration = data.get("duration", data.get("duration_minutes", 0))
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            duration_minutes=int(duration or 0),
            order=int(data.get("order", order if order is not None else 0)),
            reason=data.get("reason"),
        )


@dataclass(frozen=True)
class FlowPlan:
    """Ordered task sequence returned by the recommendation service."""

    sequence_id: str
    tasks: tuple[FlowTask, ...]
    total_duration: int


class TaskOutcome(StrEnum):
    COMPLETED = "completed"
    SKIPPED = "skipped"


class SessionOutcome(StrEnum):
    COMPLETED = "completed"
    STOPPED = "stopped"
    ABORTED = "aborted"


@dataclass(frozen=True)
class TaskOutcomeRecord:
    task_id: str
    outcome: TaskOutcome
    at: datetime


@dataclass(frozen=True)
class Progress:
    current: int
    total: int
    percentage: int

    @classmethod
    def for_index(cls, current_index: int, total: int) -> "Progress":
        # Round half up, matching what the UI has always displayed
        percentage = math.floor(100 * current_index / total + 0.5) if total else 0
        return cls(current=current_index + 1, total=total, percentage=percentage)


@dataclass
class FlowSession:
    session_id: str
    sequence: tuple[FlowTask, ...]
    started_at: datetime
    total_duration: int
    current_index: int = 0
    completed_task_ids: set[str] | frozenset[str] = field(default_factory=set)
    skipped_task_ids: set[str] | frozenset[str] = field(default_factory=set)
    outcomes: list[TaskOutcomeRecord] = field(default_factory=list)
    ended_at: datetime | None = None

    @property
    def is_finished(self) -> bool:
        return self.current_index >= len(self.sequence)

    @property
    def current_task(self) -> FlowTask | None:
        if self.is_finished:
            return None
        return self.sequence[self.current_index]

    @property
    def remaining_tasks(self) -> tuple[FlowTask, ...]:
        decided = set(self.completed_task_ids) | set(self.skipped_task_ids)
        return tuple(t for t in self.sequence if t.id not in decided)

    def task_by_id(self, task_id: str) -> FlowTask | None:
        for task in self.sequence:
            if task.id == task_id:
                return task
        return None

    def record(self, task_id: str, outcome: TaskOutcome, at: datetime) -> None:
        if self.ended_at is not None:
            raise RuntimeError(f"Session {self.session_id} is already finalized")
        if task_id in self.completed_task_ids or task_id in self.skipped_task_ids:
            raise ValueError(f"Task {task_id} already has an outcome")
        if outcome is TaskOutcome.COMPLETED:
            self.completed_task_ids.add(task_id)
        else:
            self.skipped_task_ids.add(task_id)
        self.outcomes.append(TaskOutcomeRecord(task_id=task_id, outcome=outcome, at=at))

    def finalize(self, at: datetime) -> None:
        self.completed_task_ids = frozenset(self.completed_task_ids)
        self.skipped_task_ids = frozenset(self.skipped_task_ids)
        self.ended_at = at

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "sequence": [
                {"id": t.id, "title": t.title, "duration": t.duration_minutes, "order": t.order}
                for t in self.sequence
            ],
            "current_index": self.current_index,
            "started_at": self.started_at.isoformat(),
            "total_duration": self.total_duration,
            "completed_task_ids": sorted(self.completed_task_ids),
            "skipped_task_ids": sorted(self.skipped_task_ids),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
        }


@dataclass(frozen=True)
class SessionDebrief:
    highlights: tuple[str, ...]
    insights: tuple[str, ...]
    session_id: str
    created_at: datetime

    @property
    def is_empty(self) -> bool:
        return not self.highlights and not self.insights

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "highlights": list(self.highlights),
            "insights": list(self.insights),
            "created_at": self.created_at.isoformat(),
        }
