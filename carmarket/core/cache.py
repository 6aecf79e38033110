import json
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from carmarket.core.config import CACHE_PREFIX
from carmarket.core.environment import get_redis_url
from carmarket.core.metrics import record_cache_lookup

logger = logging.getLogger(__name__)

CAR_DETAILS_CACHE = "car-details"
DEALER_DETAILS_CACHE = "dealer-details"
CAR_SEARCH_CACHE = "car-search"
FEATURED_CARS_CACHE = "featured-cars"
SESSIONS_CACHE = "sessions"

CACHE_TTLS: Dict[str, timedelta] = {
    CAR_DETAILS_CACHE: timedelta(minutes=15),
    DEALER_DETAILS_CACHE: timedelta(minutes=15),
    CAR_SEARCH_CACHE: timedelta(minutes=5),
    FEATURED_CARS_CACHE: timedelta(hours=1),
    SESSIONS_CACHE: timedelta(hours=24),
}


class CacheService:
    """Key-prefixed JSON cache on top of Redis with a fixed TTL per cache name.

    Keys are laid out as ``<prefix>:<cache-name>:<key>``. A Redis outage is logged
    and reported as a miss so callers fall through to the database.
    """

    def __init__(self, client: aioredis.Redis, prefix: str = CACHE_PREFIX):
        self.client = client
        self.prefix = prefix

    def _key(self, cache_name: str, key: str) -> str:
        return f"{self.prefix}:{cache_name}:{key}"

    def _pattern(self, cache_name: str) -> str:
        return f"{self.prefix}:{cache_name}:*"

    async def get(self, cache_name: str, key: str) -> Optional[Any]:
        try:
            raw = await self.client.get(self._key(cache_name, key))
        except RedisError as e:
            logger.warning(f"Cache read failed for {cache_name}:{key}: {e}")
            return None

        record_cache_lookup(cache_name, hit=raw is not None)
        if raw is None:
            logger.debug(f"Cache miss {cache_name}:{key}")
            return None

        logger.debug(f"Cache hit {cache_name}:{key}")
        return json.loads(raw)

    async def put(self, cache_name: str, key: str, value: Any, ttl: Optional[timedelta] = None) -> None:
        ttl = ttl or CACHE_TTLS.get(cache_name)
        try:
            await self.client.set(self._key(cache_name, key), json.dumps(value, default=str), ex=ttl)
        except RedisError as e:
            logger.warning(f"Cache write failed for {cache_name}:{key}: {e}")

    async def exists(self, cache_name: str, key: str) -> bool:
        try:
            return bool(await self.client.exists(self._key(cache_name, key)))
        except RedisError as e:
            logger.warning(f"Cache lookup failed for {cache_name}:{key}: {e}")
            return False

    async def evict(self, cache_name: str, key: str) -> None:
        try:
            await self.client.delete(self._key(cache_name, key))
        except RedisError as e:
            logger.warning(f"Cache eviction failed for {cache_name}:{key}: {e}")

    async def evict_all(self, cache_name: str) -> int:
        """Delete every key of a cache. Returns the number of keys removed."""
        removed = 0
        try:
            keys = [key async for key in self.client.scan_iter(match=self._pattern(cache_name))]
            if keys:
                removed = await self.client.delete(*keys)
        except RedisError as e:
            logger.warning(f"Cache clear failed for {cache_name}: {e}")
            return 0

        logger.info(f"Cache {cache_name} cleared ({removed} keys)")
        return removed

    async def get_cache_keys(self, cache_name: str) -> List[str]:
        strip = len(self._key(cache_name, ""))
        try:
            return sorted([
                self._decode(key)[strip:]
                async for key in self.client.scan_iter(match=self._pattern(cache_name))
            ])
        except RedisError as e:
            logger.warning(f"Cache key listing failed for {cache_name}: {e}")
            return []

    async def invalidate_search_caches(self) -> None:
        await self.evict_all(CAR_SEARCH_CACHE)

    async def invalidate_listing_caches(self) -> None:
        """Drop everything derived from the set of listings (searches and featured list)."""
        await self.evict_all(CAR_SEARCH_CACHE)
        await self.evict_all(FEATURED_CARS_CACHE)

    async def invalidate_car_caches(self, car_id: str) -> None:
        await self.evict(CAR_DETAILS_CACHE, car_id)
        await self.invalidate_listing_caches()

    async def get_statistics(self) -> Dict[str, Any]:
        caches = {}
        for cache_name, ttl in CACHE_TTLS.items():
            caches[cache_name] = {
                "keys": len(await self.get_cache_keys(cache_name)),
                "ttl_seconds": int(ttl.total_seconds()),
            }

        try:
            connected = bool(await self.client.ping())
        except RedisError:
            connected = False

        return {
            "provider": "redis",
            "prefix": self.prefix,
            "connected": connected,
            "caches": caches,
        }

    @staticmethod
    def _decode(key) -> str:
        return key.decode() if isinstance(key, bytes) else key


# Global cache instance
redis_client = aioredis.from_url(get_redis_url())
cache_service = CacheService(redis_client)


async def get_cache() -> CacheService:
    return cache_service
