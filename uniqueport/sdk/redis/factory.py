from __future__ import annotations

from redis.asyncio import Redis

from uniqueport.config import settings


class RedisClientFactory:
    """Singleton factory for a shared async Redis client.

    Defaults to ``None``; the client is only created when the Redis lock
    backend is selected.
    """

    __client: Redis | None = None

    @staticmethod
    def set_client(client: Redis | None) -> None:
        RedisClientFactory.__client = client

    @staticmethod
    def get_client() -> Redis | None:
        return RedisClientFactory.__client

    @staticmethod
    def get_or_create_client() -> Redis:
        if RedisClientFactory.__client is None:
            RedisClientFactory.__client = Redis.from_url(settings.REDIS_URL)
        return RedisClientFactory.__client
