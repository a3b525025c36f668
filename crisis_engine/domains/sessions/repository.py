from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import SimSession


class SessionRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, session_id: UUID, for_update: bool = False) -> Optional[SimSession]:
        query = select(SimSession).where(SimSession.id == session_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_by_status(self, status: str) -> list[SimSession]:
        result = await self.db.execute(
            select(SimSession).where(SimSession.status == status).order_by(SimSession.started_at)
        )
        return list(result.scalars().all())

    async def compare_and_set_state(
        self,
        session_id: UUID,
        expected_version: int,
        new_state: dict[str, Any],
    ) -> bool:
        """Single-statement optimistic update; False when another writer got there first."""
        result = await self.db.execute(
            update(SimSession)
            .where(SimSession.id == session_id, SimSession.state_version == expected_version)
            .values(current_state=new_state, state_version=expected_version + 1)
        )
        return result.rowcount == 1

    async def set_status(
        self,
        session: SimSession,
        status: str,
        *,
        started_at: Optional[datetime] = None,
        ended_at: Optional[datetime] = None,
    ) -> SimSession:
        session.status = status
        if started_at is not None:
            session.started_at = started_at
        if ended_at is not None:
            session.ended_at = ended_at
        await self.db.flush()
        await self.db.refresh(session)
        return session
