from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Decision


class DecisionRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, decision_id: UUID) -> Optional[Decision]:
        result = await self.db.execute(select(Decision).where(Decision.id == decision_id))
        return result.scalar_one_or_none()

    async def list_executed(self, session_id: UUID, limit: int = 20) -> list[Decision]:
        result = await self.db.execute(
            select(Decision)
            .where(Decision.session_id == session_id, Decision.status == "executed")
            .order_by(Decision.executed_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def set_classification_if_absent(
        self, decision_id: UUID, classification: dict[str, Any]
    ) -> Optional[dict[str, Any]]:
        """
        Store a classification unless one is already cached

        Returns:
            the classification now stored on the row (first writer wins)
        """
        await self.db.execute(
            update(Decision)
            .where(Decision.id == decision_id, Decision.ai_classification.is_(None))
            .values(ai_classification=classification, classified_at=datetime.now(timezone.utc))
        )
        result = await self.db.execute(
            select(Decision.ai_classification).where(Decision.id == decision_id)
        )
        return result.scalar_one_or_none()
