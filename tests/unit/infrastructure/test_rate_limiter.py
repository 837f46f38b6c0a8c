"""Unit tests for src/infrastructure/rate_limiter.py."""

import pytest
from pytest_mock import MockerFixture, MockType
from redis import Redis
from redis.exceptions import ConnectionError as RedisConnectionError

from src.infrastructure.rate_limiter import ATTEMPT_SCRIPT, RedisRateLimiter

KEY = "api_rate_limit:10.0.0.1"
PREFIXED_KEY = "envelope:" + KEY


@pytest.fixture
def redis_client(mocker: MockerFixture) -> MockType:
    return mocker.Mock(spec=Redis)


@pytest.fixture
def limiter(redis_client: MockType) -> RedisRateLimiter:
    return RedisRateLimiter(redis_client, "envelope:")


@pytest.mark.unit
class TestRedisRateLimiter:
    """Test the Redis-backed fixed-window limiter."""

    def test_fresh_key(self, limiter: RedisRateLimiter, redis_client: MockType) -> None:
        redis_client.get.return_value = None
        redis_client.ttl.return_value = -2

        assert limiter.hits(KEY) == 0
        assert limiter.remaining(KEY, 60) == 60
        assert limiter.available_in(KEY) == 0
        redis_client.get.assert_called_with(PREFIXED_KEY)
        redis_client.ttl.assert_called_once_with(PREFIXED_KEY)

    def test_open_window(self, limiter: RedisRateLimiter, redis_client: MockType) -> None:
        """Counter and expiry come from the prefixed key."""
        redis_client.get.return_value = b"58"
        redis_client.ttl.return_value = 42

        assert limiter.hits(KEY) == 58
        assert limiter.remaining(KEY, 60) == 2
        assert limiter.available_in(KEY) == 42

    def test_remaining_never_negative(
        self, limiter: RedisRateLimiter, redis_client: MockType
    ) -> None:
        redis_client.get.return_value = b"75"

        assert limiter.remaining(KEY, 60) == 0

    def test_key_without_expiry_reports_zero(
        self, limiter: RedisRateLimiter, redis_client: MockType
    ) -> None:
        redis_client.ttl.return_value = -1

        assert limiter.available_in(KEY) == 0

    def test_attempt_runs_script_atomically(
        self, limiter: RedisRateLimiter, redis_client: MockType
    ) -> None:
        """Check and increment happen in one script call."""
        redis_client.eval.return_value = 1

        assert limiter.attempt(KEY, 60, 60) is True
        redis_client.eval.assert_called_once_with(ATTEMPT_SCRIPT, 1, PREFIXED_KEY, 60, 60)

    def test_attempt_denied(self, limiter: RedisRateLimiter, redis_client: MockType) -> None:
        redis_client.eval.return_value = 0

        assert limiter.attempt(KEY, 60, 60) is False

    def test_script_sets_window_expiry_on_first_hit(self) -> None:
        """The window expiry is set only when the counter is created."""
        assert "redis.call('INCR', KEYS[1]) == 1" in ATTEMPT_SCRIPT
        assert "redis.call('EXPIRE', KEYS[1], ARGV[2])" in ATTEMPT_SCRIPT

    def test_store_errors_propagate(
        self, limiter: RedisRateLimiter, redis_client: MockType
    ) -> None:
        """An unreachable store surfaces to the caller unchanged."""
        redis_client.eval.side_effect = RedisConnectionError("connection refused")

        with pytest.raises(RedisConnectionError, match="connection refused"):
            limiter.attempt(KEY, 60, 60)
