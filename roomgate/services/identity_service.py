from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from roomgate.core.exceptions import UserNotFoundException
from roomgate.database.redis import RoleCache
from roomgate.models.user import User
from roomgate.schemas.user import UserType


class IdentityService:
    """Resolves user ids to user records and global roles."""

    def __init__(self, db: AsyncSession, role_cache: Optional[RoleCache] = None):
        self.db = db
        self.role_cache = role_cache

    async def get_user(self, user_id: UUID) -> User:
        result = await self.db.execute(select(User).filter(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise UserNotFoundException()
        return user

    async def get_user_type(self, user_id: UUID, cached: Optional[UserType] = None) -> UserType:
        """
        Global role of a user.

        A role already carried by the auth context wins; then the role cache;
        then the users table.

        Raises:
            UserNotFoundException: If the user does not exist
        """
        if cached is not None:
            return cached

        if self.role_cache is not None:
            hit = await self.role_cache.get_user_type(user_id)
            if hit is not None:
                return hit

        user = await self.get_user(user_id)
        if self.role_cache is not None:
            await self.role_cache.set_user_type(user_id, user.user_type)
        return user.user_type
