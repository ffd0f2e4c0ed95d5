"""
Create the database tables offline.

Usage: python scripts/tables.py [--drop]
"""
import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio

from roomgate.core.log_config import logger, setup_logging
from roomgate.database.postgres import engine
from roomgate.models.base import Base

async def create_tables(drop: bool = False):
    """
    Create all database tables based on the SQLAlchemy models,
    dropping existing ones first when asked to.
    """
    async with engine.begin() as conn:
        if drop:
            logger.warning("Dropping all tables")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Tables ready: {', '.join(sorted(Base.metadata.tables))}")
    await engine.dispose()

if __name__ == "__main__":
    setup_logging()
    asyncio.run(create_tables(drop="--drop" in sys.argv[1:]))
