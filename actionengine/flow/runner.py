"""
Tool: Flow Runner
Purpose: Walk the user through an ordered task sequence, one task at a time

Flow Mode is the "just tell me what's next" surface. The recommendation
service picks the tasks; the runner only enforces the order, keeps the focus
lock on the current task, and accounts for what was completed or skipped.

States:
    idle -> starting -> task_active -> task_completing / task_skipping
         -> task_active (next task) | session_complete -> idle
    stopping -> idle, from any non-idle state

Rules:
    - start() only from idle; complete_task()/skip_task() only from
      task_active. Anything else raises InvalidTransition and changes nothing.
    - Local state changes first and synchronously; the remote mirror is
      awaited afterwards and its failures are only logged.
    - While a transition is still awaiting the network, further start/
      complete/skip calls are rejected. stop() is always accepted, and a
      sequence arriving after a stop is discarded.
    - The focus lock names sequence[current_index] while task_active and
      nobody otherwise.

Usage:
    runner = FlowRunner(recommender, focus_lock, history)
    await runner.start(25, "high")
    await runner.complete_task()
    await runner.skip_task()
    print(runner.debrief)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

from actionengine import ENERGY_LEVELS
from actionengine.clients.base import NullSessionMirror, RecommendationClient, SessionMirror
from actionengine.config import FlowConfig
from actionengine.errors import InvalidTransition, LockConflict, RecommendationError, SequenceUnavailable
from actionengine.flow import FlowState
from actionengine.flow.debrief import synthesize
from actionengine.flow.focus_lock import FocusLock, LockResult
from actionengine.logging_config import bind_session
from actionengine.models import (
    ActionEvent,
    Clock,
    FlowSession,
    FlowTask,
    Progress,
    SessionDebrief,
    SessionOutcome,
    TaskOutcome,
    new_id,
    utcnow,
)
from actionengine.signals.history import EventHistory

logger = logging.getLogger(__name__)


class FlowRunner:
    def __init__(
        self,
        recommender: RecommendationClient,
        focus_lock: FocusLock,
        history: EventHistory,
        mirror: SessionMirror | None = None,
        on_event: Callable[[ActionEvent], None] | None = None,
        clock: Clock = utcnow,
        config: FlowConfig | None = None,
    ) -> None:
        self._recommender = recommender
        self._focus_lock = focus_lock
        self._history = history
        self._mirror_client = mirror or NullSessionMirror()
        self._on_event = on_event
        self._clock = clock
        self._config = config or FlowConfig()

        self._state = FlowState.IDLE
        self._session: FlowSession | None = None
        self._start_token: object | None = None
        self._in_flight: list[str] = []
        self._mirror_lock = asyncio.Lock()

        self.last_session: FlowSession | None = None
        self.debrief: SessionDebrief | None = None

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def session(self) -> FlowSession | None:
        return self._session

    @property
    def is_active(self) -> bool:
        return self._state is FlowState.TASK_ACTIVE

    @property
    def current_task(self) -> FlowTask | None:
        if self._state is not FlowState.TASK_ACTIVE or self._session is None:
            return None
        return self._session.current_task

    @property
    def progress(self) -> Progress | None:
        if self._state is not FlowState.TASK_ACTIVE or self._session is None:
            return None
        return Progress.for_index(self._session.current_index, len(self._session.sequence))

    @property
    def busy(self) -> bool:
        return bool(self._in_flight)

    def invariant_violations(self) -> list[str]:
        """Consistency problems between runner state and the focus lock."""
        problems = []
        locked = self._focus_lock.task_id
        session = self._session

        if self._state is FlowState.TASK_ACTIVE:
            if session is None or session.current_task is None:
                problems.append("task_active without a current task")
            elif locked != session.current_task.id:
                problems.append(f"lock holds {locked!r}, current task is {session.current_task.id!r}")
        elif locked is not None:
            problems.append(f"lock holds {locked!r} while {self._state.value}")

        if session is not None:
            if not 0 <= session.current_index <= len(session.sequence):
                problems.append(f"current_index {session.current_index} out of range")
            overlap = set(session.completed_task_ids) & set(session.skipped_task_ids)
            if overlap:
                problems.append(f"tasks both completed and skipped: {sorted(overlap)}")
        return problems

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def start(self, duration_minutes: int, energy_hint: str | None = None) -> FlowSession:
        self._require("start", FlowState.IDLE)
        self._validate_start(duration_minutes, energy_hint)

        token = object()
        self._start_token = token
        self._state = FlowState.STARTING
        self._in_flight.append("start")
        try:
            try:
                plan = await self._recommender.get_flow_sequence(duration_minutes, energy_hint)
            except RecommendationError as e:
                self._abandon_start(token)
                raise SequenceUnavailable(str(e)) from e
            except BaseException:
                self._abandon_start(token)
                raise

            if self._start_token is not token:
                logger.info("Flow start was stopped before the sequence arrived, discarding it")
                raise SequenceUnavailable("Flow Mode was stopped before the sequence arrived")
            self._start_token = None

            if not plan.tasks:
                self._state = FlowState.IDLE
                raise SequenceUnavailable("No suitable tasks for this session")
            task_ids = [t.id for t in plan.tasks]
            if len(set(task_ids)) != len(task_ids):
                self._state = FlowState.IDLE
                raise SequenceUnavailable("Sequence lists the same task more than once")

            session = FlowSession(
                session_id=plan.sequence_id or new_id("flow"),
                sequence=tuple(plan.tasks),
                started_at=self._clock(),
                total_duration=plan.total_duration,
            )
            self._session = session
            self.debrief = None
            try:
                self._lock_current(session)
            except LockConflict:
                self._session = None
                self._state = FlowState.IDLE
                raise
            self._state = FlowState.TASK_ACTIVE

            bind_session(session.session_id)
            logger.info(
                f"Flow session {session.session_id} started: {len(session.sequence)} tasks, "
                f"{session.total_duration} min"
            )
            self._emit(
                "flow_session_started",
                session.sequence[0].id,
                {
                    "session_id": session.session_id,
                    "duration": duration_minutes,
                    "energy": energy_hint,
                    "task_count": len(session.sequence),
                },
            )
            await self._mirror(
                session,
                "start",
                {
                    "duration": duration_minutes,
                    "energy": energy_hint,
                    "task_ids": [t.id for t in session.sequence],
                },
            )
            return session
        finally:
            self._in_flight.remove("start")

    async def complete_task(self) -> FlowSession:
        return await self._advance("complete_task", TaskOutcome.COMPLETED)

    async def skip_task(self) -> FlowSession:
        return await self._advance("skip_task", TaskOutcome.SKIPPED)

    async def stop(self) -> FlowSession | None:
        """Stop from any non-idle state. Returns the frozen session, if any."""
        if self._state is FlowState.IDLE:
            raise InvalidTransition("stop", self._state.value)

        self._state = FlowState.STOPPING
        self._start_token = None
        self._focus_lock.force_release()

        session = self._session
        if session is None:
            self._state = FlowState.IDLE
            logger.info("Flow start cancelled")
            return None

        self._finish(session, SessionOutcome.STOPPED)
        self._in_flight.append("stop")
        try:
            await self._mirror(
                session,
                "stop",
                {
                    "completed": len(session.completed_task_ids),
                    "skipped": len(session.skipped_task_ids),
                    "total": len(session.sequence),
                },
            )
        finally:
            self._in_flight.remove("stop")
        return session

    def dismiss_debrief(self) -> bool:
        if self.debrief is None:
            return False
        self.debrief = None
        return True

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _advance(self, operation: str, outcome: TaskOutcome) -> FlowSession:
        self._require(operation, FlowState.TASK_ACTIVE)
        session = self._session
        task = session.current_task

        completing = outcome is TaskOutcome.COMPLETED
        session.record(task.id, outcome, self._clock())
        self._state = FlowState.TASK_COMPLETING if completing else FlowState.TASK_SKIPPING
        self._focus_lock.release(task.id)
        index = session.current_index
        session.current_index += 1
        logger.info(f"Task {task.id} {outcome.value} ({session.current_index}/{len(session.sequence)})")

        self._emit(
            "timer_completed" if completing else "flow_session_skipped_task",
            task.id,
            {"task_id": task.id, "session_id": session.session_id},
        )

        if session.is_finished:
            self._state = FlowState.SESSION_COMPLETE
            self._finish(session, SessionOutcome.COMPLETED)
        else:
            try:
                self._lock_current(session)
            except LockConflict:
                self._finish(session, SessionOutcome.ABORTED)
                raise
            self._state = FlowState.TASK_ACTIVE

        self._in_flight.append(operation)
        try:
            await self._mirror(
                session,
                "complete" if completing else "skip",
                {"task_id": task.id, "index": index},
            )
        finally:
            self._in_flight.remove(operation)
        return session

    def _finish(self, session: FlowSession, outcome: SessionOutcome) -> None:
        session.finalize(self._clock())
        self.debrief = synthesize(session, self._history, outcome)
        self.last_session = session
        self._session = None
        self._state = FlowState.IDLE
        logger.info(
            f"Flow session {session.session_id} {outcome.value}: "
            f"{len(session.completed_task_ids)} completed, {len(session.skipped_task_ids)} skipped"
        )
        bind_session(None)
        self._emit(
            "flow_session_ended",
            None,
            {
                "session_id": session.session_id,
                "outcome": outcome.value,
                "completed": len(session.completed_task_ids),
                "skipped": len(session.skipped_task_ids),
            },
        )

    def _lock_current(self, session: FlowSession) -> None:
        task = session.current_task
        if self._focus_lock.acquire(task.id) is not LockResult.OK:
            raise LockConflict(task.id, self._focus_lock.task_id or "")

    def _require(self, operation: str, allowed: FlowState) -> None:
        if self._state is not allowed:
            raise InvalidTransition(operation, self._state.value)
        if self._in_flight:
            raise InvalidTransition(
                operation, self._state.value, f"'{self._in_flight[-1]}' is still in progress"
            )

    def _validate_start(self, duration_minutes: int, energy_hint: str | None) -> None:
        low, high = self._config.min_duration_minutes, self._config.max_duration_minutes
        if not low <= duration_minutes <= high:
            raise ValueError(f"Duration must be between {low} and {high} minutes")
        if energy_hint is not None and energy_hint not in ENERGY_LEVELS:
            raise ValueError(f"Invalid energy level. Must be one of: {ENERGY_LEVELS}")

    def _abandon_start(self, token: object) -> None:
        if self._start_token is token:
            self._start_token = None
            self._state = FlowState.IDLE

    def _emit(self, kind: str, subject_id: str | None, payload: Mapping[str, Any]) -> None:
        event = ActionEvent(kind=kind, timestamp=self._clock(), subject_id=subject_id, payload=payload)
        if self._on_event is not None:
            self._on_event(event)
        else:
            self._history.append(event)

    async def _mirror(self, session: FlowSession, kind: str, payload: Mapping[str, Any]) -> None:
        # One mirror call at a time; a stop issued mid-call queues behind it
        async with self._mirror_lock:
            try:
                await self._mirror_client.report_session_event(session.session_id, kind, payload)
            except Exception as e:
                logger.warning(f"Mirroring '{kind}' for {session.session_id} failed, keeping local state: {e}")
