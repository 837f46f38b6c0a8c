"""Redis client construction for the shared stores."""

from redis import Redis

from src.core.config import RedisConfig


def create_redis_client(config: RedisConfig) -> Redis:
    """Create a Redis client from configuration.

    The client connects lazily on first use, so building the application
    does not require Redis to be reachable.

    Args:
        config: Redis configuration.

    Returns:
        Redis: Client returning raw bytes.
    """
    return Redis.from_url(
        config.redis_url,
        socket_timeout=config.socket_timeout,
        socket_connect_timeout=config.socket_timeout,
    )
