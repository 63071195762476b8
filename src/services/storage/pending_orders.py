"""Redis-backed storage for the pending order marker written at checkout."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import redis.asyncio as redis
from pydantic import ValidationError

from src.config import settings
from src.models.payment import PendingOrderMarker

logger = logging.getLogger(__name__)

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Return a singleton Redis client for the current process."""

    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_client


class PendingOrderStore(ABC):
    """Key-value store holding one pending order marker per browser session."""

    @abstractmethod
    async def get(self, session_id: str) -> PendingOrderMarker | None:
        """Return the marker, or None when checkout never wrote one."""

    @abstractmethod
    async def save(self, session_id: str, marker: PendingOrderMarker) -> None:
        """Persist the marker, replacing any previous one."""

    @abstractmethod
    async def clear(self, session_id: str) -> None:
        """Forget the marker."""


class RedisPendingOrderStore(PendingOrderStore):
    """Stores markers as Redis hashes with ``pendingOrderId``/``clientReference``."""

    def __init__(self, client: redis.Redis, prefix: str | None = None) -> None:
        self._client = client
        self._prefix = prefix or settings.PENDING_ORDER_KEY_PREFIX

    def _key(self, session_id: str) -> str:
        return f"{self._prefix}{session_id}"

    async def get(self, session_id: str) -> PendingOrderMarker | None:
        raw = await self._client.hgetall(self._key(session_id))
        if not raw:
            return None
        data = {_text(k): _text(v) for k, v in raw.items()}
        try:
            return PendingOrderMarker.model_validate(data)
        except ValidationError:
            logger.warning(
                "Discarding malformed pending order marker for session %s", session_id
            )
            return None

    async def save(self, session_id: str, marker: PendingOrderMarker) -> None:
        mapping = {
            key: str(value)
            for key, value in marker.model_dump(by_alias=True).items()
            if value is not None
        }
        key = self._key(session_id)
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.delete(key)
            pipe.hset(key, mapping=mapping)
            await pipe.execute()
        logger.info(
            "Stored pending order %s for session %s", marker.order_id, session_id
        )

    async def clear(self, session_id: str) -> None:
        await self._client.delete(self._key(session_id))
        logger.debug("Cleared pending order marker for session %s", session_id)


def _text(value: str | bytes) -> str:
    return value.decode() if isinstance(value, bytes) else value


def get_pending_order_store() -> PendingOrderStore:
    return RedisPendingOrderStore(get_redis_client())
