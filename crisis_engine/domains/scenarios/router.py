"""
Scenario authoring API

Prefix: /scenarios
"""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from crisis_engine.core.database import get_db
from .schemas import ScenarioInjectCreate, ScenarioInjectResponse
from .service import ScenarioService


router = APIRouter(prefix="/scenarios", tags=["scenarios"])


def get_service(db: AsyncSession = Depends(get_db)) -> ScenarioService:
    return ScenarioService(db)


@router.post(
    "/{scenario_id}/injects",
    response_model=ScenarioInjectResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_inject(
    scenario_id: UUID,
    data: ScenarioInjectCreate,
    service: ScenarioService = Depends(get_service),
) -> ScenarioInjectResponse:
    """
    Author an inject

    - **trigger_time_minutes** and/or **trigger_condition** (one is required)
    - **title**/**content**: leave both empty to generate content when triggered
    """
    return await service.create_inject(scenario_id, data)


@router.get("/{scenario_id}/injects", response_model=list[ScenarioInjectResponse])
async def list_injects(
    scenario_id: UUID,
    service: ScenarioService = Depends(get_service),
) -> list[ScenarioInjectResponse]:
    return await service.list_injects(scenario_id)
