# roomgate/database/redis.py
import redis.asyncio as redis
from typing import Optional
from uuid import UUID
import logging

from roomgate.schemas.user import UserType

logger = logging.getLogger(__name__)

class RoleCache:
    """
    Short-lived cache of global user roles in Redis.

    Disabled when no Redis URL is configured; every method is then a no-op
    and lookups fall through to the database.
    """
    def __init__(self, redis_url: Optional[str], ttl_seconds: int = 300):
        self.redis_url = redis_url
        self.ttl_seconds = ttl_seconds
        self.redis: Optional[redis.Redis] = None

    @property
    def enabled(self) -> bool:
        return self.redis is not None

    async def connect(self):
        """Initialize Redis connection"""
        if not self.redis_url:
            logger.info("Role cache disabled: no Redis URL configured")
            return
        try:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                health_check_interval=30,
            )
            await self.redis.ping()
            logger.info("Redis connection established")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise

    async def disconnect(self):
        """Close Redis connection"""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            logger.info("Redis connection closed")

    @staticmethod
    def _key(user_id: UUID) -> str:
        return f"user:{user_id}:type"

    async def get_user_type(self, user_id: UUID) -> Optional[UserType]:
        """Return the cached role, or None on a miss."""
        if not self.redis:
            return None
        try:
            value = await self.redis.get(self._key(user_id))
        except redis.RedisError as e:
            logger.warning(f"Role cache read failed for user {user_id}, falling back to database: {e}")
            return None
        return UserType(value) if value else None

    async def set_user_type(self, user_id: UUID, user_type: UserType):
        if not self.redis:
            return
        try:
            await self.redis.set(self._key(user_id), user_type.value, ex=self.ttl_seconds)
        except redis.RedisError as e:
            logger.warning(f"Role cache write failed for user {user_id}: {e}")
