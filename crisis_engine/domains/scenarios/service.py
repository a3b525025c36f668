from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from crisis_engine.core.exceptions import NotFoundError
from .repository import ScenarioRepository
from .schemas import ScenarioInjectCreate, ScenarioInjectResponse

logger = logging.getLogger(__name__)


class ScenarioService:
    def __init__(self, db: AsyncSession):
        self._repo = ScenarioRepository(db)

    async def create_inject(self, scenario_id: UUID, data: ScenarioInjectCreate) -> ScenarioInjectResponse:
        if await self._repo.get_by_id(scenario_id) is None:
            raise NotFoundError("Scenario", str(scenario_id))
        inject = await self._repo.create_inject(scenario_id, data)
        logger.info(
            f"Inject authored: scenario={scenario_id} inject={inject.id} "
            f"time={inject.trigger_time_minutes} conditional={inject.trigger_condition is not None}"
        )
        return ScenarioInjectResponse.model_validate(inject)

    async def list_injects(self, scenario_id: UUID) -> list[ScenarioInjectResponse]:
        if await self._repo.get_by_id(scenario_id) is None:
            raise NotFoundError("Scenario", str(scenario_id))
        return [ScenarioInjectResponse.model_validate(i) for i in await self._repo.list_injects(scenario_id)]
