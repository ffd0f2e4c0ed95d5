from .database.redis import RoleCache
from .core.config import settings

# Single, shared role cache for the process; connected during app lifespan.
role_cache = RoleCache(settings.redis_url, settings.role_cache_ttl_seconds)
