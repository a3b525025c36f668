"""
Session lifecycle API

Prefix: /sessions
"""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from crisis_engine.core.database import get_db
from crisis_engine.domains.objectives.schemas import SessionScore
from .schemas import SessionResponse
from .service import SessionLifecycleService


router = APIRouter(prefix="/sessions", tags=["sessions"])


def get_service(db: AsyncSession = Depends(get_db)) -> SessionLifecycleService:
    return SessionLifecycleService(db)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: UUID,
    service: SessionLifecycleService = Depends(get_service),
) -> SessionResponse:
    return await service.get(session_id)


@router.post("/{session_id}/start", response_model=SessionResponse)
async def start_session(
    session_id: UUID,
    service: SessionLifecycleService = Depends(get_service),
) -> SessionResponse:
    """Start (or resume) a session; objectives are initialised on first start"""
    return await service.start(session_id)


@router.post("/{session_id}/pause", response_model=SessionResponse)
async def pause_session(
    session_id: UUID,
    service: SessionLifecycleService = Depends(get_service),
) -> SessionResponse:
    return await service.pause(session_id)


@router.post("/{session_id}/resume", response_model=SessionResponse)
async def resume_session(
    session_id: UUID,
    service: SessionLifecycleService = Depends(get_service),
) -> SessionResponse:
    return await service.resume(session_id)


@router.post("/{session_id}/complete", response_model=SessionResponse)
async def complete_session(
    session_id: UUID,
    service: SessionLifecycleService = Depends(get_service),
) -> SessionResponse:
    return await service.complete(session_id)


@router.post("/{session_id}/cancel", response_model=SessionResponse)
async def cancel_session(
    session_id: UUID,
    service: SessionLifecycleService = Depends(get_service),
) -> SessionResponse:
    return await service.cancel(session_id)


@router.get("/{session_id}/score", response_model=SessionScore)
async def get_session_score(
    session_id: UUID,
    service: SessionLifecycleService = Depends(get_service),
) -> SessionScore:
    """Weighted objective score with success level"""
    return await service.get_score(session_id)
