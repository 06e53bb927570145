"""Rewards engine: turns domain events into XP, levels and badges.

Each event runs as one stats mutation:

1. apply the event's counter increments
2. add the event's base XP (level recomputed)
3. evaluate the badge catalog against the post-increment snapshot
4. unlock each new badge and add its reward (level recomputed per badge)
5. report the aggregate XP and the new badges

Base XP per event:
- task completed: 10
- task created: 5
- project created: 50
- project completed: 100
- team member added: 25
- daily activity: streak bonus, 5 per day (+25 every 7th day)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from functools import partial

import structlog

from fairytale.rewards.badge_catalog import DEFAULT_BADGE_CATALOG, BadgeCatalog, BadgeDefinition
from fairytale.rewards.clock import Clock
from fairytale.rewards.errors import ValidationError
from fairytale.rewards.schemas import RewardEvent, RewardOutcome, StreakAdvance, UserStats
from fairytale.rewards.stats_store import StatsMutation, StatsStore
from fairytale.rewards.streak_tracker import DEFAULT_STREAK_TRACKER, StreakTracker

logger = structlog.get_logger()

BASE_XP: dict[RewardEvent, int] = {
    RewardEvent.TASK_COMPLETED: 10,
    RewardEvent.TASK_CREATED: 5,
    RewardEvent.PROJECT_CREATED: 50,
    RewardEvent.PROJECT_COMPLETED: 100,
    RewardEvent.TEAM_MEMBER_ADDED: 25,
}

EVENT_COUNTERS: dict[RewardEvent, str] = {
    RewardEvent.TASK_CREATED: "total_tasks_created",
    RewardEvent.PROJECT_CREATED: "total_projects_created",
    RewardEvent.PROJECT_COMPLETED: "total_projects_completed",
    RewardEvent.TEAM_MEMBER_ADDED: "total_team_members",
}


@dataclass
class _Applied:
    """What one run of an event mutation did."""

    old_level: int
    base_xp: int
    badges: list[BadgeDefinition]
    streak: StreakAdvance | None = None

    @property
    def xp_awarded(self) -> int:
        return self.base_xp + sum(b.xp_reward for b in self.badges)


class RewardsEngine:
    """Applies domain events to a user's progression."""

    def __init__(
        self,
        store: StatsStore,
        clock: Clock,
        catalog: BadgeCatalog = DEFAULT_BADGE_CATALOG,
        streaks: StreakTracker = DEFAULT_STREAK_TRACKER,
    ) -> None:
        self.store = store
        self.clock = clock
        self.catalog = catalog
        self.streaks = streaks

    # --- Event entry points ---

    async def task_completed(self, uid: str) -> RewardOutcome:
        return await self.handle(RewardEvent.TASK_COMPLETED, uid)

    async def task_created(self, uid: str) -> RewardOutcome:
        return await self.handle(RewardEvent.TASK_CREATED, uid)

    async def project_created(self, uid: str) -> RewardOutcome:
        return await self.handle(RewardEvent.PROJECT_CREATED, uid)

    async def project_completed(self, uid: str) -> RewardOutcome:
        return await self.handle(RewardEvent.PROJECT_COMPLETED, uid)

    async def team_member_added(self, uid: str) -> RewardOutcome:
        return await self.handle(RewardEvent.TEAM_MEMBER_ADDED, uid)

    async def record_activity(self, uid: str) -> RewardOutcome:
        """Advance the daily streak. Repeated calls on the same day change nothing."""
        return await self.handle(RewardEvent.DAILY_ACTIVITY, uid)

    async def handle(self, event: RewardEvent | str, uid: str) -> RewardOutcome:
        """Validate and apply one event. Persistence errors propagate unchanged."""
        event = self._validate(event, uid)

        # Read the clock once so a retried mutation sees the same moment
        apply: Callable[[StatsMutation], _Applied]
        if event is RewardEvent.DAILY_ACTIVITY:
            apply = partial(self._apply_activity, today=self.clock.today())
        else:
            apply = partial(self._apply_event, event=event, hour=self.clock.hour())

        stats, applied = await self.store.mutate(uid, apply)
        return self._outcome(event, uid, stats, applied)

    # --- Transitions ---

    def _apply_event(self, mutation: StatsMutation, event: RewardEvent, hour: int) -> _Applied:
        old_level = mutation.stats.current_level

        if event is RewardEvent.TASK_COMPLETED:
            mutation.record_task_completion(hour)
        else:
            mutation.increment(EVENT_COUNTERS[event])

        base_xp = BASE_XP[event]
        mutation.add_xp(base_xp)
        badges = self._unlock_badges(mutation)
        return _Applied(old_level=old_level, base_xp=base_xp, badges=badges)

    def _apply_activity(self, mutation: StatsMutation, today: date) -> _Applied:
        old_level = mutation.stats.current_level
        advance = self.streaks.advance(mutation.stats, today)
        if not advance.changed:
            return _Applied(old_level=old_level, base_xp=0, badges=[], streak=advance)

        mutation.apply_streak(advance)
        mutation.add_xp(advance.xp_bonus)
        badges = self._unlock_badges(mutation)
        return _Applied(old_level=old_level, base_xp=advance.xp_bonus, badges=badges, streak=advance)

    def _unlock_badges(self, mutation: StatsMutation) -> list[BadgeDefinition]:
        # Evaluated once against the post-increment snapshot; badge rewards
        # themselves never satisfy another badge's counter.
        unlocked = []
        for badge in self.catalog.evaluate(mutation.stats):
            if mutation.unlock_badge(badge):
                unlocked.append(badge)
        return unlocked

    # --- Helpers ---

    @staticmethod
    def _validate(event: RewardEvent | str, uid: str) -> RewardEvent:
        if not isinstance(uid, str) or not uid.strip():
            raise ValidationError("Event requires a non-empty uid", event=str(event))
        try:
            return RewardEvent(event)
        except ValueError:
            raise ValidationError(
                f"Unknown reward event: {event}",
                uid=uid,
                event=str(event),
                allowed=[e.value for e in RewardEvent],
            ) from None

    def _outcome(self, event: RewardEvent, uid: str, stats: UserStats, applied: _Applied) -> RewardOutcome:
        outcome = RewardOutcome(
            event=event,
            uid=uid,
            xp_awarded=applied.xp_awarded,
            base_xp=applied.base_xp,
            badges=[b.to_response(unlocked=True) for b in applied.badges],
            old_level=applied.old_level,
            new_level=stats.current_level,
            leveled_up=stats.current_level > applied.old_level,
            streak=applied.streak,
            stats=stats,
        )

        logger.info(
            "reward_event_applied",
            uid=uid,
            reward_event=event.value,
            xp_awarded=outcome.xp_awarded,
            total_xp=stats.total_xp,
        )
        for badge in applied.badges:
            logger.info("badge_unlocked", uid=uid, badge=badge.id, xp_reward=badge.xp_reward)
        if outcome.leveled_up:
            logger.info("level_up", uid=uid, old_level=outcome.old_level, new_level=outcome.new_level)
        return outcome
