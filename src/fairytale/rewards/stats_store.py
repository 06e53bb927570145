"""Stats store: owns the per-user progression record.

Every change goes through ``StatsStore.mutate``, a read-modify-write that
collects all field changes for one event and persists them with a single
compare-and-set update keyed on the record's ``revision``. A lost race re-reads
the record and re-runs the whole mutation, so work already recorded by another
writer (a badge, for instance) is seen and never paid twice.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import structlog

from fairytale.rewards.badge_catalog import BadgeDefinition
from fairytale.rewards.clock import Clock
from fairytale.rewards.errors import InconsistentStateError, PersistenceError
from fairytale.rewards.level_curve import DEFAULT_LEVEL_CURVE, LevelCurve
from fairytale.rewards.repository import StatsRepository
from fairytale.rewards.schemas import COUNTER_FIELDS, StreakAdvance, UserStats

logger = structlog.get_logger()

T = TypeVar("T")

EARLY_BIRD_BEFORE_HOUR = 8
NIGHT_OWL_FROM_HOUR = 23


class StatsMutation:
    """Working copy of one user's stats with the narrow operations events need."""

    def __init__(self, stats: UserStats, level_curve: LevelCurve) -> None:
        self.original = stats
        self.stats = stats.model_copy(deep=True)
        self._curve = level_curve
        self._changed: set[str] = set()

    @property
    def has_changes(self) -> bool:
        return bool(self._changed)

    @property
    def changed_fields(self) -> dict[str, Any]:
        return {name: getattr(self.stats, name) for name in sorted(self._changed)}

    def increment(self, counter: str, by: int = 1) -> int:
        if counter not in COUNTER_FIELDS:
            msg = f"Not a stats counter: {counter}"
            raise ValueError(msg)
        if by < 0:
            msg = f"Counters only increase, got {by} for {counter}"
            raise ValueError(msg)
        value = getattr(self.stats, counter) + by
        setattr(self.stats, counter, value)
        self._changed.add(counter)
        return value

    def record_task_completion(self, hour: int) -> str | None:
        """Count a completed task and classify it by local hour.

        Returns ``"early_bird"``, ``"night_owl"`` or None.
        """
        self.increment("total_tasks_completed")
        if hour < EARLY_BIRD_BEFORE_HOUR:
            self.increment("early_bird_tasks")
            return "early_bird"
        if hour >= NIGHT_OWL_FROM_HOUR:
            self.increment("night_owl_tasks")
            return "night_owl"
        return None

    def add_xp(self, amount: int) -> int:
        """Add XP and recompute the level. Returns the new level."""
        if amount < 0:
            msg = "XP removal is not supported"
            raise ValueError(msg)
        if amount:
            self.stats.total_xp += amount
            self.stats.current_level = self._curve.level_for_xp(self.stats.total_xp)
            self._changed.update(("total_xp", "current_level"))
        return self.stats.current_level

    def apply_streak(self, advance: StreakAdvance) -> None:
        if not advance.changed:
            return
        self.stats.current_streak = advance.current_streak
        self.stats.longest_streak = advance.longest_streak
        self.stats.last_active_date = advance.last_active_date
        self._changed.update(("current_streak", "longest_streak", "last_active_date"))

    def unlock_badge(self, badge: BadgeDefinition) -> bool:
        """Record ``badge`` and pay its reward. False if it was already unlocked."""
        if self.stats.has_badge(badge.id):
            return False
        self.stats.unlocked_badges = [*self.stats.unlocked_badges, badge.id]
        self._changed.add("unlocked_badges")
        self.add_xp(badge.xp_reward)
        return True


class StatsStore:
    """Reads, lazily creates and atomically mutates ``UserStats``."""

    def __init__(
        self,
        repository: StatsRepository,
        clock: Clock,
        level_curve: LevelCurve = DEFAULT_LEVEL_CURVE,
        max_attempts: int = 3,
    ) -> None:
        self._repository = repository
        self._clock = clock
        self._level_curve = level_curve
        self._max_attempts = max_attempts
        # uid -> (lock, holders + waiters); entries go away when unused
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}

    @property
    def level_curve(self) -> LevelCurve:
        return self._level_curve

    async def read(self, uid: str) -> UserStats:
        """Current snapshot, created with zeroed counters on first read."""
        stats = await self._repository.get(uid)
        if stats is None:
            stats = await self._repository.create(uid, UserStats.initial(uid, self._clock.now()))
            logger.info("user_stats_created", uid=uid)
        return stats

    async def mutate(self, uid: str, apply: Callable[[StatsMutation], T]) -> tuple[UserStats, T]:
        """Run ``apply`` against a fresh snapshot and persist its changes in one write.

        Same-uid calls are serialized in this process. ``apply`` may run more
        than once when another writer wins the revision race, so it must not
        have side effects outside the mutation.
        """
        async with self._user_lock(uid):
            for attempt in range(1, self._max_attempts + 1):
                current = await self.read(uid)
                mutation = StatsMutation(current, self._level_curve)
                result = apply(mutation)

                if not mutation.has_changes:
                    return current, result

                self._check_invariants(mutation.stats)

                now = self._clock.now()
                fields = mutation.changed_fields
                fields["revision"] = current.revision + 1
                fields["updated_at"] = now

                if await self._repository.update(uid, fields, expected_revision=current.revision):
                    updated = mutation.stats.model_copy(
                        update={"revision": current.revision + 1, "updated_at": now}
                    )
                    return updated, result

                logger.warning("stats_revision_conflict", uid=uid, attempt=attempt)

        raise PersistenceError(
            "Concurrent updates exhausted write attempts",
            uid=uid,
            attempts=self._max_attempts,
        )

    @asynccontextmanager
    async def _user_lock(self, uid: str) -> AsyncIterator[None]:
        lock, users = self._locks.get(uid) or (asyncio.Lock(), 0)
        self._locks[uid] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            _, users = self._locks[uid]
            if users == 1:
                del self._locks[uid]
            else:
                self._locks[uid] = (lock, users - 1)

    def _check_invariants(self, stats: UserStats) -> None:
        problems: dict[str, Any] = {}
        if stats.total_xp < 0:
            problems["total_xp"] = stats.total_xp
        expected_level = self._level_curve.level_for_xp(max(stats.total_xp, 0))
        if stats.current_level != expected_level:
            problems["current_level"] = {"stored": stats.current_level, "expected": expected_level}
        if stats.longest_streak < stats.current_streak:
            problems["streak"] = {"longest": stats.longest_streak, "current": stats.current_streak}
        negative = [name for name in COUNTER_FIELDS if getattr(stats, name) < 0]
        if negative:
            problems["negative_counters"] = negative
        if len(set(stats.unlocked_badges)) != len(stats.unlocked_badges):
            problems["duplicate_badges"] = stats.unlocked_badges

        if problems:
            logger.error("stats_invariant_violated", uid=stats.uid, **problems)
            raise InconsistentStateError("Stats invariant violated", uid=stats.uid, **problems)
