"""
Recount members_count and posts_count for every live room and fix drift.

Usage: python scripts/reconcile_counters.py [batch_size]
"""
import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio

from roomgate.core.config import settings
from roomgate.core.log_config import logger, setup_logging
from roomgate.core.policy import policy_from_settings
from roomgate.database.postgres import async_session, engine
from roomgate.dependencies.service_dependencies import get_asset_storage
from roomgate.services.identity_service import IdentityService
from roomgate.services.post_service import PostService
from roomgate.services.room_service import RoomService

async def reconcile(batch_size: int):
    async with async_session() as session:
        service = RoomService(
            db=session,
            policy=policy_from_settings(settings),
            identity_service=IdentityService(session),
            post_service=PostService(session),
            asset_storage=get_asset_storage(),
        )
        drifted = await service.reconcile_all_counters(batch_size=batch_size)
    for drift in drifted:
        logger.info(
            f"room {drift.room_id}: members {drift.members_count_before}->{drift.members_count_after}, "
            f"posts {drift.posts_count_before}->{drift.posts_count_after}"
        )
    await engine.dispose()

if __name__ == "__main__":
    setup_logging()
    asyncio.run(reconcile(int(sys.argv[1]) if len(sys.argv) > 1 else 100))
