"""
SQLAlchemy engine store

Every method is its own unit of work (`AsyncSessionLocal()` + commit), so no
transaction is held open across an AI call.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crisis_engine.core.database import AsyncSessionLocal
from crisis_engine.core.exceptions import ConflictError
from crisis_engine.domains.decisions.repository import DecisionRepository
from crisis_engine.domains.decisions.schemas import DecisionClassification, DecisionRecord
from crisis_engine.domains.escalation.repository import EscalationSnapshotRepository
from crisis_engine.domains.escalation.schemas import EscalationSnapshot
from crisis_engine.domains.injects.repository import InjectLedgerRepository
from crisis_engine.domains.injects.schemas import (
    ClaimResult,
    GenerationStatusView,
    PublishedInjectView,
    SessionEventRecord,
    SessionEventType,
)
from crisis_engine.domains.objectives.repository import ObjectiveProgressRepository
from crisis_engine.domains.objectives.schemas import ObjectiveAdjustment, ObjectiveProgressView
from crisis_engine.domains.objectives.scoring import apply_adjustments
from crisis_engine.domains.scenarios.repository import ScenarioRepository
from crisis_engine.domains.scenarios.schemas import InjectDefinition, ObjectiveDefinition, ScenarioContext
from crisis_engine.domains.sessions.models import SimSession
from crisis_engine.domains.sessions.repository import SessionRepository
from crisis_engine.domains.sessions.schemas import SessionSnapshot, SessionStatus
from .ports import StateMutator

logger = logging.getLogger(__name__)

STATE_UPDATE_ATTEMPTS = 5


class SqlEngineStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal):
        self._session_factory = session_factory

    # =========================================================================
    # Sessions / scenarios
    # =========================================================================

    async def list_active_sessions(self) -> list[SessionSnapshot]:
        async with self._session_factory() as db:
            rows = await SessionRepository(db).list_by_status(SessionStatus.IN_PROGRESS.value)
            return [SessionSnapshot.model_validate(r) for r in rows]

    async def get_session(self, session_id: UUID) -> Optional[SessionSnapshot]:
        async with self._session_factory() as db:
            row = await SessionRepository(db).get_by_id(session_id)
            return SessionSnapshot.model_validate(row) if row else None

    async def get_scenario_context(self, scenario_id: UUID) -> Optional[ScenarioContext]:
        async with self._session_factory() as db:
            repo = ScenarioRepository(db)
            scenario = await repo.get_by_id(scenario_id)
            if scenario is None:
                return None
            objectives = await repo.list_objectives(scenario_id)
            return ScenarioContext(
                id=scenario.id,
                title=scenario.title,
                description=scenario.description or "",
                category=scenario.category,
                objectives=[ObjectiveDefinition.model_validate(o) for o in objectives],
            )

    async def list_scenario_injects(self, scenario_id: UUID) -> list[InjectDefinition]:
        async with self._session_factory() as db:
            rows = await ScenarioRepository(db).list_injects(scenario_id)
            return [InjectDefinition.model_validate(r) for r in rows]

    async def update_session_state(self, session_id: UUID, mutator: StateMutator) -> dict[str, Any]:
        """Optimistic read-modify-write on current_state, retried on version conflicts."""
        for attempt in range(1, STATE_UPDATE_ATTEMPTS + 1):
            async with self._session_factory() as db:
                repo = SessionRepository(db)
                session = await repo.get_by_id(session_id)
                if session is None:
                    raise ConflictError("SESSION_NOT_FOUND", f"Session {session_id} disappeared")
                new_state = mutator(dict(session.current_state or {}))
                if await repo.compare_and_set_state(session_id, session.state_version, new_state):
                    await db.commit()
                    return new_state
                await db.rollback()
            logger.debug(f"current_state version conflict: session_id={session_id} attempt={attempt}")

        raise ConflictError(
            "STATE_VERSION_CONFLICT",
            f"current_state of session {session_id} kept changing, gave up after {STATE_UPDATE_ATTEMPTS} attempts",
        )

    async def complete_session(self, session_id: UUID, ended_at: datetime) -> bool:
        async with self._session_factory() as db:
            result = await db.execute(
                update(SimSession)
                .where(
                    SimSession.id == session_id,
                    SimSession.status.in_([SessionStatus.IN_PROGRESS.value, SessionStatus.PAUSED.value]),
                )
                .values(status=SessionStatus.COMPLETED.value, ended_at=ended_at, paused_at=None)
            )
            await db.commit()
            return result.rowcount == 1

    # =========================================================================
    # Ledger / event log
    # =========================================================================

    async def list_published_injects(self, session_id: UUID) -> list[PublishedInjectView]:
        async with self._session_factory() as db:
            rows = await InjectLedgerRepository(db).list_published(session_id)
            return [PublishedInjectView.model_validate(r) for r in rows]

    async def try_claim(
        self,
        session_id: UUID,
        inject_id: UUID,
        trigger_source: str,
        content: dict[str, Any],
        event_payload: dict[str, Any],
    ) -> ClaimResult:
        """
        Ledger claim and event-log append in one transaction

        The conditional insert decides the winner; a failing event-log insert
        rolls the claim back so the inject stays eligible.
        """
        async with self._session_factory() as db:
            repo = InjectLedgerRepository(db)
            try:
                claimed = await repo.claim(session_id, inject_id, trigger_source, content)
                if not claimed:
                    await db.rollback()
                    return ClaimResult(claimed=False)
                event = await repo.append_event(session_id, SessionEventType.INJECT.value, event_payload)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
            return ClaimResult(claimed=True, event=SessionEventRecord.model_validate(event))

    async def append_session_event(
        self,
        session_id: UUID,
        event_type: str,
        payload: dict[str, Any],
        actor_id: Optional[UUID] = None,
    ) -> SessionEventRecord:
        async with self._session_factory() as db:
            event = await InjectLedgerRepository(db).append_event(session_id, event_type, payload, actor_id)
            await db.commit()
            return SessionEventRecord.model_validate(event)

    # =========================================================================
    # Generation status
    # =========================================================================

    async def list_generation_status(self, session_id: UUID) -> list[GenerationStatusView]:
        async with self._session_factory() as db:
            rows = await InjectLedgerRepository(db).list_generation_status(session_id)
            return [GenerationStatusView.model_validate(r) for r in rows]

    async def record_generation_failure(
        self,
        session_id: UUID,
        inject_id: UUID,
        stage: str,
        error_code: str,
        stall_threshold: int,
    ) -> GenerationStatusView:
        async with self._session_factory() as db:
            row = await InjectLedgerRepository(db).record_generation_failure(
                session_id, inject_id, stage, error_code, stall_threshold
            )
            view = GenerationStatusView.model_validate(row)
            await db.commit()
            return view

    async def flag_for_review(self, session_id: UUID, inject_id: UUID, reason: str) -> GenerationStatusView:
        async with self._session_factory() as db:
            row = await InjectLedgerRepository(db).flag_for_review(session_id, inject_id, reason)
            view = GenerationStatusView.model_validate(row)
            await db.commit()
            return view

    # =========================================================================
    # Escalation
    # =========================================================================

    async def latest_escalation_snapshot(self, session_id: UUID) -> Optional[EscalationSnapshot]:
        async with self._session_factory() as db:
            row = await EscalationSnapshotRepository(db).latest(session_id)
            return EscalationSnapshot.model_validate(row) if row else None

    async def list_escalation_snapshots(self, session_id: UUID, limit: int = 50) -> list[EscalationSnapshot]:
        async with self._session_factory() as db:
            rows = await EscalationSnapshotRepository(db).list_for_session(session_id, limit)
            return [EscalationSnapshot.model_validate(r) for r in rows]

    async def save_escalation_snapshot(self, snapshot: EscalationSnapshot) -> EscalationSnapshot:
        async with self._session_factory() as db:
            row = await EscalationSnapshotRepository(db).append(snapshot)
            saved = EscalationSnapshot.model_validate(row)
            await db.commit()
            return saved

    # =========================================================================
    # Decisions
    # =========================================================================

    async def get_decision(self, decision_id: UUID) -> Optional[DecisionRecord]:
        async with self._session_factory() as db:
            row = await DecisionRepository(db).get_by_id(decision_id)
            return DecisionRecord.model_validate(row) if row else None

    async def list_executed_decisions(self, session_id: UUID, limit: int = 20) -> list[DecisionRecord]:
        async with self._session_factory() as db:
            rows = await DecisionRepository(db).list_executed(session_id, limit)
            return [DecisionRecord.model_validate(r) for r in rows]

    async def save_decision_classification(
        self, decision_id: UUID, classification: DecisionClassification
    ) -> DecisionClassification:
        async with self._session_factory() as db:
            stored = await DecisionRepository(db).set_classification_if_absent(
                decision_id, classification.model_dump(mode="json")
            )
            await db.commit()
            return DecisionClassification.model_validate(stored) if stored else classification

    # =========================================================================
    # Objectives
    # =========================================================================

    async def list_objective_progress(self, session_id: UUID) -> list[ObjectiveProgressView]:
        async with self._session_factory() as db:
            rows = await ObjectiveProgressRepository(db).list_for_session(session_id)
            return [ObjectiveProgressView.model_validate(r) for r in rows]

    async def apply_objective_adjustments(
        self,
        session_id: UUID,
        adjustments: list[ObjectiveAdjustment],
        now: datetime,
    ) -> list[ObjectiveProgressView]:
        """Row-locked read-modify-write of the session's objective rows"""
        async with self._session_factory() as db:
            repo = ObjectiveProgressRepository(db)
            rows = await repo.list_for_session(session_id, for_update=True)
            views = [ObjectiveProgressView.model_validate(r) for r in rows]
            changed, skipped = apply_adjustments(views, adjustments, now)
            if skipped:
                logger.debug(
                    f"Objective adjustments skipped (objective not in scenario): session_id={session_id} "
                    f"keys={sorted({a.objective_key for a in skipped})}"
                )
            await repo.save(rows, changed)
            await db.commit()

            changed_ids = {c.objective_id for c in changed}
            return changed + [v for v in views if v.objective_id not in changed_ids]
