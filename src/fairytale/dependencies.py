"""Shared FastAPI dependencies."""

from functools import lru_cache

from fastapi import Depends, Header, HTTPException

from fairytale.config import get_settings
from fairytale.database import get_session_factory
from fairytale.redis_client import get_redis_or_none
from fairytale.rewards.clock import SystemClock
from fairytale.rewards.demo_pool import DemoPool
from fairytale.rewards.engine import RewardsEngine
from fairytale.rewards.leaderboard import LeaderboardRanker
from fairytale.rewards.repository import SqlStatsRepository
from fairytale.rewards.stats_store import StatsStore


@lru_cache
def get_clock() -> SystemClock:
    """Wall clock in the configured user time zone."""
    return SystemClock(get_settings().timezone)


@lru_cache
def get_stats_store() -> StatsStore:
    """Process-wide store; it owns the per-uid locks, so there must be one."""
    settings = get_settings()
    return StatsStore(
        SqlStatsRepository(get_session_factory()),
        get_clock(),
        max_attempts=settings.stats_write_attempts,
    )


def get_rewards_engine(
    store: StatsStore = Depends(get_stats_store),  # noqa: B008
    clock: SystemClock = Depends(get_clock),  # noqa: B008
) -> RewardsEngine:
    return RewardsEngine(store, clock)


def get_leaderboard_ranker() -> LeaderboardRanker:
    settings = get_settings()
    return LeaderboardRanker(
        SqlStatsRepository(get_session_factory()),
        DemoPool(get_redis_or_none(), settings.demo_pool_key),
        fetch_limit=settings.leaderboard_fetch_limit,
    )


async def get_current_uid(x_user_id: str | None = Header(default=None)) -> str:
    """Caller uid, set by the upstream auth layer."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_user_id.strip()
