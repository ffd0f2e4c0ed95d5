from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from roomgate.core.config import settings
from roomgate.core.policy import RoomCreationPolicy, policy_from_settings
from roomgate.database.postgres import get_db_session
from roomgate.database.redis import RoleCache
from roomgate.globals import role_cache
from roomgate.services.asset_storage import AssetStorage
from roomgate.services.identity_service import IdentityService
from roomgate.services.post_service import PostService
from roomgate.services.room_service import RoomService

_policy = policy_from_settings(settings)


def get_room_policy() -> RoomCreationPolicy:
    """
    Dependency that provides the room policy selected at startup.
    """
    return _policy

def get_role_cache() -> RoleCache:
    """
    Dependency that provides the singleton role cache.
    """
    return role_cache

def get_asset_storage() -> AssetStorage:
    return AssetStorage(
        settings.asset_storage_url,
        api_key=settings.asset_storage_api_key,
        timeout=settings.asset_storage_timeout_seconds,
        public_base_url=settings.asset_storage_public_base_url,
    )

def get_identity_service(
    db: AsyncSession = Depends(get_db_session),
    cache: RoleCache = Depends(get_role_cache),
) -> IdentityService:
    """
    Dependency that provides an instance of IdentityService with an active database session.
    """
    return IdentityService(db, role_cache=cache)

def get_post_service(db: AsyncSession = Depends(get_db_session)) -> PostService:
    return PostService(db)

def get_room_service(
    db: AsyncSession = Depends(get_db_session),
    policy: RoomCreationPolicy = Depends(get_room_policy),
    identity_service: IdentityService = Depends(get_identity_service),
    post_service: PostService = Depends(get_post_service),
    asset_storage: AssetStorage = Depends(get_asset_storage),
) -> RoomService:
    """
    Dependency that provides an instance of RoomService with required dependencies.
    """
    return RoomService(
        db=db,
        policy=policy,
        identity_service=identity_service,
        post_service=post_service,
        asset_storage=asset_storage,
    )
