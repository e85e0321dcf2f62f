"""Per-(organization, inviter) cooldown between invite sends.

A UX throttle, not a security boundary: it stops an admin from
hammering "send" and flooding someone's inbox.  The state is a key with
a TTL equal to the cooldown window.  While the key exists the next
invite is rejected with the remaining seconds.

Backends follow the usual pattern: in-memory for dev/test (per process,
lost on restart), Redis when REDIS_URL is set (shared by all instances).
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from typing import Protocol, runtime_checkable
from uuid import UUID

from tenantguard.db.redis import redis_pool


def cooldown_key(org_id: UUID, user_id: UUID) -> str:
    return f"{org_id}:{user_id}"


@runtime_checkable
class CooldownStore(Protocol):
    async def remaining(self, key: str) -> int: ...
    async def start(self, key: str, seconds: int) -> None: ...
    async def clear(self, key: str) -> None: ...


class InMemoryCooldownStore:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        # key -> monotonic expiry
        self._expiry: dict[str, float] = {}

    async def remaining(self, key: str) -> int:
        expires = self._expiry.get(key)
        if expires is None:
            return 0
        left = expires - self._clock()
        if left <= 0:
            del self._expiry[key]
            return 0
        return math.ceil(left)

    async def start(self, key: str, seconds: int) -> None:
        if seconds <= 0:
            return
        now = self._clock()
        self._prune(now)
        self._expiry[key] = now + seconds

    def _prune(self, now: float) -> None:
        expired = [k for k, expires in self._expiry.items() if expires <= now]
        for k in expired:
            del self._expiry[k]

    async def clear(self, key: str) -> None:
        self._expiry.pop(key, None)


class RedisCooldownStore:
    """Key per pair with ``SET ... EX``; Redis expires it for us."""

    _PREFIX = "invite-cooldown:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def remaining(self, key: str) -> int:
        ttl = await self._redis.ttl(self._PREFIX + key)
        # -2: no key, -1: key without expiry (never set by us)
        return max(int(ttl), 0)

    async def start(self, key: str, seconds: int) -> None:
        if seconds <= 0:
            return
        await self._redis.set(self._PREFIX + key, "1", ex=seconds)

    async def clear(self, key: str) -> None:
        await self._redis.delete(self._PREFIX + key)


if redis_pool is not None:
    invite_cooldown: CooldownStore = RedisCooldownStore(redis_pool)
else:
    invite_cooldown = InMemoryCooldownStore()
