"""Redis-backed TTL cache with compute-on-miss semantics.

Values are opaque byte strings stored with an expiry. Redis errors propagate
to the caller.
"""

from collections.abc import Callable

from loguru import logger
from redis import Redis


class RedisResponseCache:
    """Shared response cache.

    Args:
        client: Redis client. Responses must not be decoded.
        key_prefix: Prefix applied to every cache key.
    """

    def __init__(self, client: Redis, key_prefix: str = "") -> None:
        self._redis = client
        self._key_prefix = key_prefix

    def remember(self, key: str, ttl: int, producer: Callable[[], bytes]) -> bytes:
        """Return the cached value for ``key`` or store ``producer()`` for ``ttl``.

        Concurrent misses for the same key may each compute a value; the
        last one stored wins. Errors raised by ``producer`` propagate and
        nothing is stored.
        """
        full_key = self._key_prefix + key
        cached = self._redis.get(full_key)
        if cached is not None:
            logger.debug("Cache hit for {}", key)
            return bytes(cached)

        value = producer()
        self._redis.set(full_key, value, ex=ttl)
        return value
