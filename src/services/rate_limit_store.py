"""
Rate Limit Counter Stores

Backends that hold fixed-window counters for the rate limiters.

Every store applies a batch of charges all-or-nothing: each counter is
checked first, and only when every counter has room are all of them
incremented. The plan limiter's request and token counters therefore never
charge one counter for a request the other denied.

Backends:
- MemoryRateLimitStore: per-process, records kept in a TTLCache whose entry
  TTL equals the window, so entry expiry and reset_time coincide.
- RedisRateLimitStore: shared across instances, one Lua script per batch so
  the check-and-increment is atomic on the Redis server. Falls back to an
  embedded MemoryRateLimitStore whenever Redis errors.
"""

import logging
import math
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from threading import Lock
from typing import Any

from src.services.ttl_cache import TTLCache

logger = logging.getLogger(__name__)


@dataclass
class RateLimitRecord:
    """Counter for one identity within its current window."""

    count: int
    reset_time: float


@dataclass(frozen=True)
class WindowCharge:
    """A requested increment of one counter."""

    key: str
    cost: int
    limit: int
    window_seconds: float


@dataclass
class WindowState:
    """Store view of one counter after (or instead of) a charge."""

    key: str
    count: int
    limit: int
    reset_time: float
    allowed: bool

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


class RateLimitStore:
    """Interface shared by the counter backends."""

    backend = "base"

    def hit(self, charges: Sequence[WindowCharge]) -> tuple[bool, list[WindowState]]:
        """Apply charges all-or-nothing; returns (allowed, per-charge states)."""
        raise NotImplementedError

    def peek(self, key: str, limit: int, window_seconds: float) -> WindowState:
        """Return the current state of a counter without charging it."""
        raise NotImplementedError

    def reset(self, key: str) -> bool:
        """Forget a counter. Returns True when something was removed."""
        raise NotImplementedError

    def cleanup_expired(self) -> int:
        """Physically remove expired counters; returns the number removed."""
        raise NotImplementedError

    def get_stats(self) -> dict[str, Any]:
        raise NotImplementedError


class MemoryRateLimitStore(RateLimitStore):
    """Process-local counters backed by a TTLCache."""

    backend = "memory"

    def __init__(
        self,
        max_entries: int | None = 10000,
        clock: Callable[[], float] = time.time,
    ):
        self._clock = clock
        self._records = TTLCache(default_ttl=60.0, max_entries=max_entries, clock=clock)
        self._lock = Lock()

    def hit(self, charges: Sequence[WindowCharge]) -> tuple[bool, list[WindowState]]:
        with self._lock:
            now = self._clock()
            pending = []
            allowed = True

            for charge in charges:
                record = self._records.get(charge.key)
                if record is None:
                    count, reset_time = 0, now + charge.window_seconds
                else:
                    count, reset_time = record.count, record.reset_time
                passes = count + charge.cost <= charge.limit
                allowed = allowed and passes
                pending.append((charge, record, count, reset_time, passes))

            states = []
            for charge, record, count, reset_time, passes in pending:
                if allowed:
                    count += charge.cost
                    if record is None:
                        self._records.set(
                            charge.key,
                            RateLimitRecord(count=count, reset_time=reset_time),
                            ttl=charge.window_seconds,
                        )
                    else:
                        record.count = count
                states.append(
                    WindowState(
                        key=charge.key,
                        count=count,
                        limit=charge.limit,
                        reset_time=reset_time,
                        allowed=passes,
                    )
                )

            return allowed, states

    def peek(self, key: str, limit: int, window_seconds: float) -> WindowState:
        record = self._records.get(key)
        if record is None:
            return WindowState(
                key=key,
                count=0,
                limit=limit,
                reset_time=self._clock() + window_seconds,
                allowed=limit > 0,
            )
        return WindowState(
            key=key,
            count=record.count,
            limit=limit,
            reset_time=record.reset_time,
            allowed=record.count < limit,
        )

    def get_record(self, key: str) -> RateLimitRecord | None:
        """Return the live record for a key, if any."""
        return self._records.get(key)

    def reset(self, key: str) -> bool:
        with self._lock:
            return self._records.delete(key)

    def cleanup_expired(self) -> int:
        with self._lock:
            return self._records.cleanup_expired()

    def __len__(self) -> int:
        return len(self._records)

    def get_stats(self) -> dict[str, Any]:
        stats = self._records.get_stats()
        return {
            "backend": self.backend,
            "tracked_keys": stats["entries"],
            "max_entries": stats["max_entries"],
            "evictions": stats["evictions"],
            "expirations": stats["expirations"],
        }


# KEYS: counter keys. ARGV: (cost, limit, window_ms) triples, one per key.
# Returns {allowed, count_1, ttl_ms_1, passes_1, count_2, ...}
_FIXED_WINDOW_SCRIPT = """
local allowed = 1
local counts = {}
local ttls = {}
local passes = {}
local fresh = {}
for i, key in ipairs(KEYS) do
  local base = (i - 1) * 3
  local cost = tonumber(ARGV[base + 1])
  local limit = tonumber(ARGV[base + 2])
  local window_ms = tonumber(ARGV[base + 3])
  local ttl = redis.call('PTTL', key)
  local count = 0
  if ttl > 0 then
    count = tonumber(redis.call('GET', key) or '0')
    fresh[i] = false
  else
    ttl = window_ms
    fresh[i] = true
  end
  counts[i] = count
  ttls[i] = ttl
  if count + cost > limit then
    passes[i] = 0
    allowed = 0
  else
    passes[i] = 1
  end
end
if allowed == 1 then
  for i, key in ipairs(KEYS) do
    local base = (i - 1) * 3
    local cost = tonumber(ARGV[base + 1])
    if fresh[i] then
      redis.call('SET', key, cost, 'PX', tonumber(ARGV[base + 3]))
    else
      redis.call('INCRBY', key, cost)
    end
    counts[i] = counts[i] + cost
  end
end
local result = {allowed}
for i = 1, #KEYS do
  table.insert(result, counts[i])
  table.insert(result, ttls[i])
  table.insert(result, passes[i])
end
return result
"""


class RedisRateLimitStore(RateLimitStore):
    """Counters shared through Redis, with an in-memory fallback."""

    backend = "redis"

    def __init__(
        self,
        redis_client,
        key_namespace: str = "ratelimit",
        fallback: MemoryRateLimitStore | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.redis_client = redis_client
        self.key_namespace = key_namespace
        self._clock = clock
        self._fallback = fallback or MemoryRateLimitStore(clock=clock)
        self._script = redis_client.register_script(_FIXED_WINDOW_SCRIPT)
        self._fallback_hits = 0

    def _redis_key(self, key: str) -> str:
        return f"{self.key_namespace}:{key}"

    def hit(self, charges: Sequence[WindowCharge]) -> tuple[bool, list[WindowState]]:
        keys = [self._redis_key(charge.key) for charge in charges]
        args: list[int] = []
        for charge in charges:
            args.extend(
                [charge.cost, charge.limit, int(math.ceil(charge.window_seconds * 1000))]
            )

        try:
            raw = self._script(keys=keys, args=args)
        except Exception as e:
            self._fallback_hits += 1
            logger.warning(f"Redis rate limit check failed, using in-memory counters: {e}")
            return self._fallback.hit(charges)

        now = self._clock()
        allowed = bool(int(raw[0]))
        states = []
        for index, charge in enumerate(charges):
            count, ttl_ms, passes = raw[1 + index * 3 : 4 + index * 3]
            states.append(
                WindowState(
                    key=charge.key,
                    count=int(count),
                    limit=charge.limit,
                    reset_time=now + int(ttl_ms) / 1000,
                    allowed=bool(int(passes)),
                )
            )
        return allowed, states

    def peek(self, key: str, limit: int, window_seconds: float) -> WindowState:
        try:
            pipe = self.redis_client.pipeline()
            pipe.get(self._redis_key(key))
            pipe.pttl(self._redis_key(key))
            value, ttl_ms = pipe.execute()
        except Exception as e:
            logger.warning(f"Redis rate limit peek failed, using in-memory counters: {e}")
            return self._fallback.peek(key, limit, window_seconds)

        now = self._clock()
        if value is None or ttl_ms is None or int(ttl_ms) <= 0:
            return WindowState(
                key=key, count=0, limit=limit, reset_time=now + window_seconds, allowed=limit > 0
            )
        count = int(value)
        return WindowState(
            key=key,
            count=count,
            limit=limit,
            reset_time=now + int(ttl_ms) / 1000,
            allowed=count < limit,
        )

    def reset(self, key: str) -> bool:
        removed = self._fallback.reset(key)
        try:
            return bool(self.redis_client.delete(self._redis_key(key))) or removed
        except Exception as e:
            logger.warning(f"Redis rate limit reset failed for {key}: {e}")
            return removed

    def cleanup_expired(self) -> int:
        # Redis expires counters itself; only the fallback needs sweeping
        return self._fallback.cleanup_expired()

    def get_stats(self) -> dict[str, Any]:
        return {
            "backend": self.backend,
            "key_namespace": self.key_namespace,
            "fallback_hits": self._fallback_hits,
            "fallback_tracked_keys": len(self._fallback),
        }
