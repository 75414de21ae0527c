import redis.asyncio as redis
import base64
import os
import logging
from typing import Optional

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 3600


def _b64url(value: str) -> str:
    return base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii").rstrip("=")


def build_cache_key(question: str, subject: str) -> str:
    """``cache:{subject}:{question}``, both base64url-encoded.

    The question is trimmed and lowercased first, so trivially different
    phrasings of the same question share an entry. The subject (owner id,
    optionally scoped to a meeting) keeps entries from leaking across users.
    """
    normalized = question.strip().lower()
    return f"cache:{_b64url(subject)}:{_b64url(normalized)}"


class ResponseCache:
    """Best-effort memoization of chat answers in Redis.

    A Redis outage degrades to cache misses; it never fails a request.
    """

    def __init__(self, redis_client=None, ttl_seconds: int = CACHE_TTL_SECONDS):
        if redis_client is None:
            redis_url = os.getenv("REDIS_URL", "redis://localhost:6379")
            redis_client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5
            )
        self.redis_client = redis_client
        self.ttl_seconds = ttl_seconds

    async def get_cached_response(self, question: str, subject: str) -> Optional[str]:
        key = build_cache_key(question, subject)
        try:
            cached = await self.redis_client.get(key)
        except redis.RedisError as e:
            logger.error(f"Cache read failed: subject={subject}, error={e}")
            return None

        if cached is not None:
            logger.info(f"Cache hit: subject={subject}")
        return cached

    async def set_cached_response(self, question: str, answer: str, subject: str) -> None:
        key = build_cache_key(question, subject)
        try:
            await self.redis_client.set(key, answer, ex=self.ttl_seconds)
        except redis.RedisError as e:
            logger.error(f"Cache write failed: subject={subject}, error={e}")

    async def close(self) -> None:
        await self.redis_client.aclose()
