from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from crisis_engine.domains.scenarios.models import ScenarioObjective
from .models import ObjectiveProgress
from .schemas import ObjectiveProgressView


class ObjectiveProgressRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def initialize_for_session(
        self, session_id: UUID, objectives: Iterable[ScenarioObjective]
    ) -> int:
        """One row per objective; re-running after a restart is a no-op."""
        rows = [
            {
                "session_id": session_id,
                "objective_id": objective.id,
                "objective_key": objective.objective_key,
                "objective_name": objective.name,
                "weight": objective.weight,
                "progress_percentage": 0,
                "status": "not_started",
                "penalties": [],
                "bonuses": [],
                "metrics": {},
            }
            for objective in objectives
        ]
        if not rows:
            return 0
        stmt = (
            pg_insert(ObjectiveProgress)
            .values(rows)
            .on_conflict_do_nothing(index_elements=["session_id", "objective_id"])
        )
        result = await self.db.execute(stmt)
        return result.rowcount or 0

    async def list_for_session(self, session_id: UUID, for_update: bool = False) -> list[ObjectiveProgress]:
        query = (
            select(ObjectiveProgress)
            .where(ObjectiveProgress.session_id == session_id)
            .order_by(ObjectiveProgress.objective_key)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def save(self, rows: list[ObjectiveProgress], views: Iterable[ObjectiveProgressView]) -> None:
        by_objective = {row.objective_id: row for row in rows}
        for view in views:
            row = by_objective[view.objective_id]
            row.progress_percentage = view.progress_percentage
            row.status = view.status.value
            row.score = view.score
            row.penalties = list(view.penalties)
            row.bonuses = list(view.bonuses)
            row.metrics = dict(view.metrics)
        await self.db.flush()
