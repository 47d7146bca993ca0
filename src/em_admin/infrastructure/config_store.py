"""SystemConfig store — one Redis hash shared by every worker process.

Key layout:
    em:system_config  ->  {"notification": "...", "event_mode": "NONE|A|B|C|D"}

A missing hash (or a missing field) reads as the defaults ("", NONE).

Read paths that show prices take ``get_prices_hidden`` so fog covers every
price-derived field a player can reach.
"""

import logging

from fastapi import Depends
from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.em_common.enums import EventMode
from src.em_common.errors import StorageFailureError
from src.em_common.redis_client import get_redis
from src.em_common.system_config import SystemConfig
from src.em_gateway.auth.dependencies import get_current_user
from src.em_ledger.domain.models import User

logger = logging.getLogger(__name__)

CONFIG_KEY = "em:system_config"


class SystemConfigStore:
    def __init__(self, redis: Redis) -> None:
        self._redis = redis

    async def get(self) -> SystemConfig:
        try:
            raw: dict[str, str] = await self._redis.hgetall(CONFIG_KEY)
        except RedisError as exc:
            raise StorageFailureError(f"config read failed: {exc}") from exc

        mode_value = raw.get("event_mode", EventMode.NONE.value)
        try:
            mode = EventMode(mode_value)
        except ValueError:
            logger.warning("Unknown event_mode %r in %s, using NONE", mode_value, CONFIG_KEY)
            mode = EventMode.NONE
        return SystemConfig(notification=raw.get("notification", ""), event_mode=mode)

    async def update(
        self,
        notification: str | None = None,
        event_mode: EventMode | None = None,
    ) -> SystemConfig:
        """Overwrite the given fields; fields passed as None are left unchanged."""
        mapping: dict[str, str] = {}
        if notification is not None:
            mapping["notification"] = notification
        if event_mode is not None:
            mapping["event_mode"] = event_mode.value
        if mapping:
            try:
                await self._redis.hset(CONFIG_KEY, mapping=mapping)
            except RedisError as exc:
                raise StorageFailureError(f"config write failed: {exc}") from exc
            logger.info("System config updated: %s", mapping)
        return await self.get()


async def get_config_store(redis: Redis = Depends(get_redis)) -> SystemConfigStore:
    return SystemConfigStore(redis)


async def get_system_config(
    store: SystemConfigStore = Depends(get_config_store),
) -> SystemConfig:
    """FastAPI dependency: the current SystemConfig snapshot for this request."""
    return await store.get()


async def get_prices_hidden(
    config: SystemConfig = Depends(get_system_config),
    current_user: User = Depends(get_current_user),
) -> bool:
    """FastAPI dependency: True while fog (event mode D) blinds this caller.

    Admins keep seeing prices.
    """
    return config.hides_prices and not current_user.is_admin
