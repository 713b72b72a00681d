"""Per-user, per-command cooldowns.

`CooldownTracker.check_and_record` is the only way to touch the state. Keys are
spread across shards, each behind its own lock, so a check for one user never
waits on another user's shard while staying atomic for its own key.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal

type CooldownKey = tuple[int, str]

DEFAULT_SHARDS = 16
DEFAULT_PURGE_THRESHOLD = 1024


@dataclass(frozen=True, slots=True)
class Eligible:
    type: Literal["eligible"] = field(default="eligible", init=False)


@dataclass(frozen=True, slots=True)
class Blocked:
    remaining: float
    type: Literal["blocked"] = field(default="blocked", init=False)


type CooldownStatus = Eligible | Blocked

ELIGIBLE = Eligible()


@dataclass(slots=True)
class _Shard:
    lock: threading.Lock = field(default_factory=threading.Lock)
    entries: dict[CooldownKey, float] = field(default_factory=dict)
    next_purge: int = 0

    def purge_locked(self, now: float) -> int:
        expired = [key for key, until in self.entries.items() if until <= now]
        for key in expired:
            del self.entries[key]
        return len(expired)


class CooldownTracker:
    def __init__(
        self,
        *,
        shards: int = DEFAULT_SHARDS,
        purge_threshold: int = DEFAULT_PURGE_THRESHOLD,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if shards < 1:
            raise ValueError("shards must be at least 1")
        self._shards = tuple(_Shard(next_purge=purge_threshold) for _ in range(shards))
        self._purge_threshold = purge_threshold
        self._clock = clock

    def _shard(self, key: CooldownKey) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    def check_and_record(
        self,
        user_id: int,
        command: str,
        cooldown: float,
        now: float | None = None,
    ) -> CooldownStatus:
        if cooldown <= 0:
            return ELIGIBLE
        if now is None:
            now = self._clock()
        key = (user_id, command)
        shard = self._shard(key)
        with shard.lock:
            eligible_at = shard.entries.get(key)
            if eligible_at is not None and eligible_at > now:
                return Blocked(remaining=eligible_at - now)
            shard.entries[key] = now + cooldown
            if len(shard.entries) > shard.next_purge:
                shard.purge_locked(now)
                # scan again only once the live entries have doubled
                shard.next_purge = max(self._purge_threshold, 2 * len(shard.entries))
        return ELIGIBLE

    def remaining(self, user_id: int, command: str, now: float | None = None) -> float:
        if now is None:
            now = self._clock()
        key = (user_id, command)
        shard = self._shard(key)
        with shard.lock:
            eligible_at = shard.entries.get(key)
        if eligible_at is None:
            return 0.0
        return max(0.0, eligible_at - now)

    def purge(self, now: float | None = None) -> int:
        if now is None:
            now = self._clock()
        purged = 0
        for shard in self._shards:
            with shard.lock:
                purged += shard.purge_locked(now)
        return purged

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.entries)
        return total
