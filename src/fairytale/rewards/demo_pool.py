"""Demo leaderboard pool: 15 stable synthetic entries.

Keeps the leaderboard populated before real users exist. The pool is kept in
Redis so every instance ranks against the same copy; the seed below is used
when Redis is unavailable or holds nothing usable.
"""

from __future__ import annotations

import json
import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError

from fairytale.rewards.level_curve import DEFAULT_LEVEL_CURVE, LevelCurve
from fairytale.rewards.schemas import LeaderboardEntry

logger = logging.getLogger(__name__)

DEMO_SEED_DATA: list[dict] = [
    {"uid": "demo_1", "display_name": "Alex Chen", "total_xp": 15420, "total_tasks_completed": 234, "longest_streak": 45},
    {"uid": "demo_2", "display_name": "Sarah Miller", "total_xp": 12850, "total_tasks_completed": 189, "longest_streak": 32},
    {"uid": "demo_3", "display_name": "Jordan Kim", "total_xp": 11200, "total_tasks_completed": 156, "longest_streak": 21},
    {"uid": "demo_4", "display_name": "Morgan Davis", "total_xp": 9870, "total_tasks_completed": 134, "longest_streak": 18},
    {"uid": "demo_5", "display_name": "Casey Taylor", "total_xp": 8450, "total_tasks_completed": 112, "longest_streak": 14},
    {"uid": "demo_6", "display_name": "Riley Johnson", "total_xp": 7200, "total_tasks_completed": 98, "longest_streak": 19},
    {"uid": "demo_7", "display_name": "Avery Williams", "total_xp": 6100, "total_tasks_completed": 82, "longest_streak": 10},
    {"uid": "demo_8", "display_name": "Quinn Brown", "total_xp": 5200, "total_tasks_completed": 68, "longest_streak": 8},
    {"uid": "demo_9", "display_name": "Cameron Lee", "total_xp": 4300, "total_tasks_completed": 56, "longest_streak": 5},
    {"uid": "demo_10", "display_name": "Drew Martinez", "total_xp": 3500, "total_tasks_completed": 45, "longest_streak": 10},
    {"uid": "demo_11", "display_name": "Skyler Garcia", "total_xp": 2800, "total_tasks_completed": 38, "longest_streak": 4},
    {"uid": "demo_12", "display_name": "Aubrey Anderson", "total_xp": 2100, "total_tasks_completed": 28, "longest_streak": 6},
    {"uid": "demo_13", "display_name": "Reese Wilson", "total_xp": 1500, "total_tasks_completed": 20, "longest_streak": 4},
    {"uid": "demo_14", "display_name": "Parker Moore", "total_xp": 950, "total_tasks_completed": 14, "longest_streak": 3},
    {"uid": "demo_15", "display_name": "Sage Thompson", "total_xp": 500, "total_tasks_completed": 8, "longest_streak": 2},
]


def build_demo_entries(
    seed: list[dict] = DEMO_SEED_DATA,
    level_curve: LevelCurve = DEFAULT_LEVEL_CURVE,
) -> list[LeaderboardEntry]:
    """Seed rows as unranked demo entries; levels always follow the curve."""
    return [
        LeaderboardEntry(
            uid=item["uid"],
            display_name=item["display_name"],
            total_xp=item["total_xp"],
            current_level=level_curve.level_for_xp(item["total_xp"]),
            total_tasks_completed=item.get("total_tasks_completed", 0),
            longest_streak=item.get("longest_streak", 0),
            is_demo=True,
        )
        for item in seed
    ]


class DemoPool:
    """Loads the shared demo pool, seeding Redis on first use."""

    def __init__(
        self,
        redis: Redis | None,
        key: str = "leaderboard:demo_pool",
        seed: list[dict] = DEMO_SEED_DATA,
        level_curve: LevelCurve = DEFAULT_LEVEL_CURVE,
    ) -> None:
        self.redis = redis
        self.key = key
        self._seed = seed
        self._level_curve = level_curve

    def defaults(self) -> list[LeaderboardEntry]:
        return build_demo_entries(self._seed, self._level_curve)

    async def load(self) -> list[LeaderboardEntry]:
        """Pool in stable seed order. Never raises."""
        if self.redis is None:
            return self.defaults()

        try:
            raw = await self.redis.get(self.key)
            if raw is None:
                await self.redis.set(self.key, json.dumps(self._seed))
                return self.defaults()
            return build_demo_entries(json.loads(raw), self._level_curve)
        except (RedisError, OSError, ValueError, KeyError, TypeError):
            logger.warning("Failed to load demo pool from Redis, using seed data", exc_info=True)
            return self.defaults()
