"""
Static plan replay

Returns a task sequence fixed in advance, typically from a YAML file. Used by
the CLI simulator and for demos without a backend. It replays the plan as
written: no ranking and no trimming to the requested duration.

Plan file format:
    sequence_id: demo
    tasks:
      - id: t1
        title: Reply to Sam
        duration: 10
        reason: Quick win to warm up
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml

from actionengine.clients.base import RecommendationClient
from actionengine.errors import RecommendationError
from actionengine.models import FlowPlan, FlowTask, new_id


def plan_from_dict(data: Mapping[str, Any]) -> FlowPlan:
    try:
        raw_tasks = data.get("tasks") or data.get("sequence") or []
        tasks = tuple(FlowTask.from_dict(t, order=i) for i, t in enumerate(raw_tasks))
        total = data.get("total_duration", data.get("totalDuration"))
        total_duration = int(total) if total is not None else sum(t.duration_minutes for t in tasks)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise RecommendationError(f"Invalid plan: {e}") from e

    seen: set[str] = set()
    for task in tasks:
        if task.id in seen:
            raise RecommendationError(f"Invalid plan: task {task.id} appears more than once")
        seen.add(task.id)

    return FlowPlan(
        sequence_id=str(data.get("sequence_id") or data.get("sessionId") or new_id("seq")),
        tasks=tasks,
        total_duration=total_duration,
    )


class StaticRecommendationClient(RecommendationClient):
    def __init__(self, plan: FlowPlan) -> None:
        self.plan = plan
        self.requests: list[tuple[int, str | None]] = []

    @classmethod
    def from_tasks(cls, tasks: Iterable[Mapping[str, Any]], sequence_id: str | None = None) -> "StaticRecommendationClient":
        return cls(plan_from_dict({"tasks": list(tasks), "sequence_id": sequence_id}))

    @classmethod
    def from_yaml(cls, path: Path) -> "StaticRecommendationClient":
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise RecommendationError(f"Cannot read plan {path}: {e}") from e
        return cls(plan_from_dict(data))

    async def get_flow_sequence(self, duration_minutes: int, energy_hint: str | None = None) -> FlowPlan:
        self.requests.append((duration_minutes, energy_hint))
        return self.plan
