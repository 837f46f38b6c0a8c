"""Fixed-window rate limiter backed by Redis.

A window opens on the first attempt for a key and lasts ``decay_seconds``:
the counter key is created with that expiry. Attempts beyond
``max_attempts`` inside the window are rejected; once the key expires the
counter starts over. Counters live in Redis, so every worker process shares
the same limit. Redis errors propagate to the caller.
"""

from typing import Final

from loguru import logger
from redis import Redis

# Check and increment in one round trip so concurrent workers cannot overshoot
ATTEMPT_SCRIPT: Final[str] = """
local current = tonumber(redis.call('GET', KEYS[1]) or '0')
if current >= tonumber(ARGV[1]) then
    return 0
end
if redis.call('INCR', KEYS[1]) == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[2])
end
return 1
"""


class RedisRateLimiter:
    """Attempt counter keyed by an arbitrary string.

    Args:
        client: Redis client. Responses must not be decoded.
        key_prefix: Prefix applied to every counter key.
    """

    def __init__(self, client: Redis, key_prefix: str = "") -> None:
        self._redis = client
        self._key_prefix = key_prefix

    def _key(self, key: str) -> str:
        return self._key_prefix + key

    def hits(self, key: str) -> int:
        """Attempts recorded for ``key`` in the current window."""
        value = self._redis.get(self._key(key))
        return int(value) if value is not None else 0

    def remaining(self, key: str, max_attempts: int) -> int:
        """Attempts left for ``key`` in the current window."""
        return max(max_attempts - self.hits(key), 0)

    def available_in(self, key: str) -> int:
        """Whole seconds until the window for ``key`` resets (0 if none is open)."""
        # -2: no such key, -1: key without expiry
        return max(int(self._redis.ttl(self._key(key))), 0)

    def attempt(self, key: str, max_attempts: int, decay_seconds: int) -> bool:
        """Record an attempt unless the limit is already reached.

        Returns:
            bool: True if the attempt was allowed and counted.
        """
        allowed = self._redis.eval(
            ATTEMPT_SCRIPT, 1, self._key(key), max_attempts, decay_seconds
        )
        if not allowed:
            logger.debug("Rate limit reached for {} ({} attempts)", key, max_attempts)
            return False
        return True
