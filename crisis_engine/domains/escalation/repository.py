from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import EscalationSnapshotRecord
from .schemas import EscalationSnapshot


class EscalationSnapshotRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(self, snapshot: EscalationSnapshot) -> EscalationSnapshotRecord:
        data = snapshot.model_dump(mode="json")
        record = EscalationSnapshotRecord(
            session_id=snapshot.session_id,
            evaluated_at=snapshot.evaluated_at,
            factors=data["factors"],
            de_escalation_factors=data["de_escalation_factors"],
            pathways=data["pathways"],
            de_escalation_pathways=data["de_escalation_pathways"],
        )
        self.db.add(record)
        await self.db.flush()
        await self.db.refresh(record)
        return record

    async def latest(self, session_id: UUID) -> Optional[EscalationSnapshotRecord]:
        result = await self.db.execute(
            select(EscalationSnapshotRecord)
            .where(EscalationSnapshotRecord.session_id == session_id)
            .order_by(EscalationSnapshotRecord.evaluated_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_session(self, session_id: UUID, limit: int = 50) -> list[EscalationSnapshotRecord]:
        result = await self.db.execute(
            select(EscalationSnapshotRecord)
            .where(EscalationSnapshotRecord.session_id == session_id)
            .order_by(EscalationSnapshotRecord.evaluated_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
