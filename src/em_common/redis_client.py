"""Redis client factory for the SystemConfig store.

Balances, prices and positions never live here; they go through PostgreSQL.
"""

import redis.asyncio as aioredis

from config.settings import settings

_redis_client: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Get or lazily create the shared Redis client (string responses)."""
    global _redis_client  # noqa: PLW0603
    if _redis_client is None:
        _redis_client = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_client


async def close_redis() -> None:
    """Close the shared client; called from the app lifespan on shutdown."""
    global _redis_client  # noqa: PLW0603
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
