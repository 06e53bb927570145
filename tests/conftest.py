"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from fairytale.dependencies import get_clock, get_leaderboard_ranker, get_stats_store
from fairytale.main import create_app
from fairytale.rewards.badge_catalog import BadgeCatalog
from fairytale.rewards.demo_pool import DemoPool
from fairytale.rewards.engine import RewardsEngine
from fairytale.rewards.errors import PersistenceError
from fairytale.rewards.leaderboard import LeaderboardRanker
from fairytale.rewards.level_curve import DEFAULT_LEVEL_CURVE
from fairytale.rewards.schemas import UserStats
from fairytale.rewards.stats_store import StatsStore


@dataclass
class FrozenClock:
    """Clock that only moves when a test moves it."""

    current: datetime = field(default_factory=lambda: datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self.current

    def today(self) -> date:
        return self.current.date()

    def hour(self) -> int:
        return self.current.hour

    def at_hour(self, hour: int) -> None:
        self.current = self.current.replace(hour=hour)

    def advance_days(self, days: int) -> None:
        self.current += timedelta(days=days)


class InMemoryStatsRepository:
    """Dict-backed stats collaborator with failure switches."""

    def __init__(self) -> None:
        self.rows: dict[str, UserStats] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.update_calls = 0

    def seed(self, uid: str, **fields: Any) -> UserStats:
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        fields.setdefault("current_level", DEFAULT_LEVEL_CURVE.level_for_xp(fields.get("total_xp", 0)))
        stats = UserStats(uid=uid, created_at=now, updated_at=now, **fields)
        self.rows[uid] = stats
        return stats

    async def get(self, uid: str) -> UserStats | None:
        if self.fail_reads:
            raise PersistenceError("read failed", uid=uid, operation="get")
        row = self.rows.get(uid)
        return row.model_copy(deep=True) if row is not None else None

    async def create(self, uid: str, stats: UserStats) -> UserStats:
        if self.fail_writes:
            raise PersistenceError("write failed", uid=uid, operation="create")
        if uid in self.rows:
            return self.rows[uid].model_copy(deep=True)
        self.rows[uid] = stats.model_copy(deep=True)
        return stats

    async def update(self, uid: str, fields: dict[str, Any], expected_revision: int) -> bool:
        if self.fail_writes:
            raise PersistenceError("write failed", uid=uid, operation="update")
        self.update_calls += 1
        row = self.rows.get(uid)
        if row is None or row.revision != expected_revision:
            return False
        self.rows[uid] = row.model_copy(update=fields, deep=True)
        return True

    async def query_top_by_xp(self, limit: int) -> list[UserStats]:
        if self.fail_reads:
            raise PersistenceError("query failed", operation="query_top_by_xp")
        ordered = sorted(self.rows.values(), key=lambda s: (-s.total_xp, s.uid))
        return [s.model_copy(deep=True) for s in ordered[:limit]]

    async def count_above_xp(self, total_xp: int, uid: str) -> int:
        if self.fail_reads:
            raise PersistenceError("count failed", operation="count_above_xp")
        return sum(1 for s in self.rows.values() if (-s.total_xp, s.uid) < (-total_xp, uid))


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def repository() -> InMemoryStatsRepository:
    return InMemoryStatsRepository()


@pytest.fixture
def store(repository: InMemoryStatsRepository, clock: FrozenClock) -> StatsStore:
    return StatsStore(repository, clock)


@pytest.fixture
def engine(store: StatsStore, clock: FrozenClock) -> RewardsEngine:
    return RewardsEngine(store, clock, catalog=BadgeCatalog())


@pytest.fixture
def ranker(repository: InMemoryStatsRepository) -> LeaderboardRanker:
    return LeaderboardRanker(repository, DemoPool(None))


@pytest.fixture
def app(store: StatsStore, clock: FrozenClock, ranker: LeaderboardRanker) -> FastAPI:
    """App wired to in-memory collaborators (no lifespan)."""
    application = create_app()
    application.dependency_overrides[get_stats_store] = lambda: store
    application.dependency_overrides[get_clock] = lambda: clock
    application.dependency_overrides[get_leaderboard_ranker] = lambda: ranker
    return application


@pytest_asyncio.fixture
async def api_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
