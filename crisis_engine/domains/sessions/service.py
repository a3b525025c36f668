"""
Session lifecycle service

Transitions: scheduled/lobby -> in_progress -> paused <-> in_progress -> completed,
with cancel allowed from any non-terminal state. Starting a session anchors
scenario time and creates the objective progress rows.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from crisis_engine.core.exceptions import ConflictError, NotFoundError
from crisis_engine.domains.objectives.repository import ObjectiveProgressRepository
from crisis_engine.domains.objectives.schemas import ObjectiveProgressView, SessionScore
from crisis_engine.domains.objectives.scoring import calculate_session_score
from crisis_engine.domains.scenarios.repository import ScenarioRepository
from .clock import ScenarioClock, SystemClock
from .models import SimSession
from .repository import SessionRepository
from .schemas import SESSION_TRANSITIONS, SessionResponse, SessionSnapshot, SessionStatus

logger = logging.getLogger(__name__)


class SessionLifecycleService:
    """Session status transitions and pause accounting"""

    def __init__(self, db: AsyncSession, clock: Optional[SystemClock] = None):
        self._db = db
        self._repo = SessionRepository(db)
        self._scenarios = ScenarioRepository(db)
        self._objectives = ObjectiveProgressRepository(db)
        self._clock = clock or SystemClock()

    # =========================================================================
    # Transitions
    # =========================================================================

    async def start(self, session_id: UUID) -> SessionResponse:
        session = await self._load(session_id)
        now = self._clock.now()
        self._check_transition(session, SessionStatus.IN_PROGRESS)

        if session.status == SessionStatus.PAUSED.value:
            return await self.resume(session_id)

        scenario = await self._scenarios.get_by_id(session.scenario_id)
        if scenario is None:
            raise NotFoundError("Scenario", str(session.scenario_id))

        if not session.current_state:
            session.current_state = dict(scenario.initial_state or {})
        session.total_paused_seconds = 0
        session.paused_at = None
        await self._repo.set_status(session, SessionStatus.IN_PROGRESS.value, started_at=now)

        created = await self._objectives.initialize_for_session(
            session.id, await self._scenarios.list_objectives(scenario.id)
        )
        logger.info(f"Session started: session_id={session.id} objectives_initialised={created}")
        return self._to_response(session, now)

    async def pause(self, session_id: UUID) -> SessionResponse:
        session = await self._load(session_id)
        self._check_transition(session, SessionStatus.PAUSED)
        now = self._clock.now()

        session.paused_at = now
        await self._repo.set_status(session, SessionStatus.PAUSED.value)
        logger.info(f"Session paused: session_id={session.id}")
        return self._to_response(session, now)

    async def resume(self, session_id: UUID) -> SessionResponse:
        session = await self._load(session_id)
        if session.status != SessionStatus.PAUSED.value:
            raise ConflictError("SESSION_NOT_PAUSED", f"Session {session_id} is {session.status}")
        now = self._clock.now()

        if session.paused_at is not None:
            paused_for = int((now - session.paused_at).total_seconds())
            session.total_paused_seconds = (session.total_paused_seconds or 0) + max(paused_for, 0)
        session.paused_at = None
        await self._repo.set_status(session, SessionStatus.IN_PROGRESS.value)
        logger.info(
            f"Session resumed: session_id={session.id} total_paused_seconds={session.total_paused_seconds}"
        )
        return self._to_response(session, now)

    async def complete(self, session_id: UUID) -> SessionResponse:
        return await self._finish(session_id, SessionStatus.COMPLETED)

    async def cancel(self, session_id: UUID) -> SessionResponse:
        return await self._finish(session_id, SessionStatus.CANCELLED)

    # =========================================================================
    # Queries
    # =========================================================================

    async def get(self, session_id: UUID) -> SessionResponse:
        session = await self._load(session_id)
        return self._to_response(session, self._clock.now())

    async def get_score(self, session_id: UUID) -> SessionScore:
        await self._load(session_id)
        rows = await self._objectives.list_for_session(session_id)
        return calculate_session_score(ObjectiveProgressView.model_validate(r) for r in rows)

    # =========================================================================
    # Internal
    # =========================================================================

    async def _finish(self, session_id: UUID, status: SessionStatus) -> SessionResponse:
        session = await self._load(session_id)
        self._check_transition(session, status)
        now = self._clock.now()

        if session.paused_at is not None:
            session.total_paused_seconds += max(int((now - session.paused_at).total_seconds()), 0)
            session.paused_at = None
        await self._repo.set_status(session, status.value, ended_at=now)
        logger.info(f"Session {status.value}: session_id={session.id}")
        return self._to_response(session, now)

    async def _load(self, session_id: UUID) -> SimSession:
        session = await self._repo.get_by_id(session_id, for_update=True)
        if session is None:
            raise NotFoundError("Session", str(session_id))
        return session

    @staticmethod
    def _check_transition(session: SimSession, target: SessionStatus) -> None:
        current = SessionStatus(session.status)
        if target not in SESSION_TRANSITIONS[current]:
            raise ConflictError(
                "INVALID_SESSION_TRANSITION",
                f"Cannot move session {session.id} from {current.value} to {target.value}",
            )

    @staticmethod
    def _to_response(session: SimSession, now: datetime) -> SessionResponse:
        snapshot = SessionSnapshot.model_validate(session)
        response = SessionResponse.model_validate(session)
        response.elapsed_minutes = round(ScenarioClock.for_session(snapshot).elapsed_minutes(now), 2)
        return response
