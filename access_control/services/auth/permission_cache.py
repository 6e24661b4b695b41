import logging
from typing import Optional

from redis.exceptions import RedisError

from access_control.core.config import settings
from access_control.core.redis import RedisClient, redis_client

logger = logging.getLogger(__name__)

VERSION_KEY = "rbac:version"


class PermissionCache:
    """
    Redis cache of per-user permission decisions.

    Every key embeds the global RBAC version; any mutation bumps the
    version, which orphans all previously cached decisions at once. Redis
    failures are logged and treated as cache misses.
    """

    def __init__(
        self,
        client: Optional[RedisClient] = None,
        enabled: Optional[bool] = None,
        ttl: Optional[int] = None,
    ):
        self.client = client or redis_client
        self.enabled = settings.PERMISSION_CACHE_ENABLED if enabled is None else enabled
        self.ttl = ttl or settings.PERMISSION_CACHE_TTL_SECONDS

    async def _version(self) -> str:
        return await self.client.get(VERSION_KEY) or "0"

    async def _key(self, user_id: int, module: str, action: str) -> str:
        version = await self._version()
        return f"rbac:v{version}:perm:{user_id}:{module}:{action}"

    async def get(self, user_id: int, module: str, action: str) -> Optional[bool]:
        if not self.enabled:
            return None
        try:
            value = await self.client.get(await self._key(user_id, module, action))
        except (RedisError, OSError) as e:
            logger.warning(f"Permission cache read failed: {str(e)}")
            return None
        if value is None:
            return None
        return value == "1"

    async def set(self, user_id: int, module: str, action: str, permitted: bool) -> None:
        if not self.enabled:
            return
        try:
            key = await self._key(user_id, module, action)
            await self.client.set(key, "1" if permitted else "0", expire=self.ttl)
        except (RedisError, OSError) as e:
            logger.warning(f"Permission cache write failed: {str(e)}")

    async def invalidate(self) -> None:
        """Bump the RBAC version; called after every committed mutation"""
        if not self.enabled:
            return
        try:
            version = await self.client.incr(VERSION_KEY)
            logger.debug(f"Permission cache version bumped to {version}")
        except (RedisError, OSError) as e:
            logger.warning(f"Permission cache invalidation failed: {str(e)}")


# Global permission cache instance
permission_cache = PermissionCache()
