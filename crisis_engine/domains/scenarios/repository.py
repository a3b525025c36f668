from __future__ import annotations

import json
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Scenario, ScenarioInject, ScenarioObjective
from .schemas import ScenarioInjectCreate


class ScenarioRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, scenario_id: UUID) -> Optional[Scenario]:
        result = await self.db.execute(select(Scenario).where(Scenario.id == scenario_id))
        return result.scalar_one_or_none()

    async def list_objectives(self, scenario_id: UUID) -> list[ScenarioObjective]:
        result = await self.db.execute(
            select(ScenarioObjective)
            .where(ScenarioObjective.scenario_id == scenario_id)
            .order_by(ScenarioObjective.created_at)
        )
        return list(result.scalars().all())

    async def list_injects(self, scenario_id: UUID) -> list[ScenarioInject]:
        result = await self.db.execute(
            select(ScenarioInject)
            .where(ScenarioInject.scenario_id == scenario_id)
            .order_by(ScenarioInject.created_at, ScenarioInject.id)
        )
        return list(result.scalars().all())

    async def create_inject(self, scenario_id: UUID, data: ScenarioInjectCreate) -> ScenarioInject:
        condition = data.trigger_condition
        if isinstance(condition, dict):
            condition = json.dumps(condition)

        inject = ScenarioInject(
            scenario_id=scenario_id,
            trigger_time_minutes=data.trigger_time_minutes,
            trigger_condition=condition,
            type=data.type.value,
            scope=data.scope.value,
            severity=data.severity.value,
            title=data.title,
            content=data.content,
            target_teams=data.target_teams,
            affected_roles=data.affected_roles,
            requires_response=data.requires_response,
        )
        self.db.add(inject)
        await self.db.flush()
        await self.db.refresh(inject)
        return inject
