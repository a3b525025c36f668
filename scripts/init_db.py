#!/usr/bin/env python3
"""
Database initialisation script

Creates every engine table on the configured database (idempotent).
"""
from __future__ import annotations

import asyncio
import logging

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


async def init_tables() -> int:
    from crisis_engine.core.database import Base, engine

    # register models on Base.metadata
    import crisis_engine.domains.scenarios.models  # noqa: F401
    import crisis_engine.domains.sessions.models  # noqa: F401
    import crisis_engine.domains.decisions.models  # noqa: F401
    import crisis_engine.domains.objectives.models  # noqa: F401
    import crisis_engine.domains.injects.models  # noqa: F401
    import crisis_engine.domains.escalation.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    return len(Base.metadata.tables)


def main() -> None:
    count = asyncio.run(init_tables())
    logger.info(f"Tables ready: {count}")


if __name__ == "__main__":
    main()
