# rapid_assessment/services/validation_cache.py
import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from rapid_assessment.core.config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "rapid:validation"


class ValidationCache:
    """
    Redis-backed cache for validation results. Best effort: a Redis outage
    degrades to recomputing, never to a failed request.
    """

    def __init__(self, url: Optional[str] = None, ttl: Optional[int] = None):
        self._url = url or settings.REDIS_URL
        self._ttl = ttl or settings.VALIDATION_CACHE_TTL
        self._client = None

    async def _get_client(self):
        if self._client is None:
            self._client = aioredis.from_url(self._url, decode_responses=True)
        return self._client

    @staticmethod
    def key(kind: str, assessment_id: str, responses_hash: str, category_id: Optional[str] = None) -> str:
        parts = [KEY_PREFIX, assessment_id, kind]
        if category_id:
            parts.append(category_id)
        parts.append(responses_hash)
        return ":".join(parts)

    async def get(self, key: str) -> Optional[Any]:
        try:
            client = await self._get_client()
            val = await client.get(key)
        except (RedisError, OSError) as exc:
            logger.debug("validation cache get failed for %s: %s", key, exc)
            return None
        if val is None:
            return None
        return json.loads(val)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None):
        try:
            client = await self._get_client()
            await client.set(key, json.dumps(value, default=str), ex=ttl or self._ttl)
        except (RedisError, OSError) as exc:
            logger.debug("validation cache set failed for %s: %s", key, exc)

    async def clear_assessment(self, assessment_id: str) -> int:
        """Drop every cached result for one assessment. Returns the number of keys removed."""
        removed = 0
        try:
            client = await self._get_client()
            async for key in client.scan_iter(match=f"{KEY_PREFIX}:{assessment_id}:*"):
                removed += await client.delete(key)
        except (RedisError, OSError) as exc:
            logger.warning("validation cache clear failed for assessment %s: %s", assessment_id, exc)
        return removed

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


validation_cache = ValidationCache()
