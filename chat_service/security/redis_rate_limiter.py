"""Redis-backed sliding window rate limiter."""

from __future__ import annotations

import math
import time
from typing import Final

from redis import Redis
from redis.exceptions import ResponseError


class RedisSlidingWindowRateLimiter:
    """Limiter shared by all service replicas, kept in Redis sorted sets.

    The script returns ``0`` for an allowed attempt, otherwise the number of
    milliseconds until the oldest attempt in the window expires.
    """

    _LUA_SCRIPT: Final[str] = """
    local key = KEYS[1]
    local seq_key = key .. ':seq'
    local window_ms = tonumber(ARGV[1])
    local max_requests = tonumber(ARGV[2])
    local now_ms = tonumber(ARGV[3])

    redis.call('ZREMRANGEBYSCORE', key, '-inf', now_ms - window_ms)
    if redis.call('ZCARD', key) >= max_requests then
        local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
        return tonumber(oldest[2]) + window_ms - now_ms
    end
    local seq = redis.call('INCR', seq_key)
    redis.call('PEXPIRE', seq_key, window_ms)
    redis.call('ZADD', key, now_ms, tostring(now_ms) .. ':' .. tostring(seq))
    redis.call('PEXPIRE', key, window_ms)
    return 0
    """

    def __init__(
        self,
        client: Redis,
        *,
        max_requests: int,
        window_seconds: int,
        key_prefix: str = "chat:throttle",
    ) -> None:
        """Keep the Redis client and window settings; register the Lua script."""
        self._client = client
        self._max_requests = max_requests
        self._window_ms = window_seconds * 1000
        self._key_prefix = key_prefix
        self._script = client.register_script(self._LUA_SCRIPT)

    def acquire(self, key: str) -> int:
        """Return ``0`` when ``key`` is under the limit, else seconds to wait."""
        now_ms = int(time.time() * 1000)
        redis_key = f"{self._key_prefix}:{key}"
        try:
            wait_ms = int(
                self._script(keys=[redis_key], args=[self._window_ms, self._max_requests, now_ms])
            )
        except ResponseError as exc:
            message = str(exc).lower()
            if "unknown command" not in message or "eval" not in message:
                raise
            wait_ms = self._acquire_without_lua(redis_key, now_ms)
        return _to_seconds(wait_ms)

    def _acquire_without_lua(self, redis_key: str, now_ms: int) -> int:
        """Command-by-command variant for servers that reject scripting."""
        self._client.zremrangebyscore(redis_key, "-inf", now_ms - self._window_ms)
        if self._client.zcard(redis_key) >= self._max_requests:
            oldest = self._client.zrange(redis_key, 0, 0, withscores=True)
            return int(oldest[0][1]) + self._window_ms - now_ms
        seq = self._client.incr(f"{redis_key}:seq")
        self._client.pexpire(f"{redis_key}:seq", self._window_ms)
        self._client.zadd(redis_key, {f"{now_ms}:{seq}": now_ms})
        self._client.pexpire(redis_key, self._window_ms)
        return 0


def _to_seconds(wait_ms: int) -> int:
    if wait_ms <= 0:
        return 0
    return max(1, math.ceil(wait_ms / 1000))
