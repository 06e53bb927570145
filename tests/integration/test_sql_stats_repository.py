"""SQL stats repository tests against a throwaway SQLite database."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import date, datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fairytale import database
from fairytale.db.base import Base
from fairytale.rewards.demo_pool import DemoPool
from fairytale.rewards.engine import RewardsEngine
from fairytale.rewards.errors import PersistenceError
from fairytale.rewards.leaderboard import LeaderboardRanker
from fairytale.rewards.repository import SqlStatsRepository
from fairytale.rewards.schemas import UserStats
from fairytale.rewards.stats_store import StatsStore

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'stats.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def sql_repository(session_factory) -> SqlStatsRepository:
    return SqlStatsRepository(session_factory)


class TestSqlStatsRepository:

    @pytest.mark.asyncio
    async def test_get_missing(self, sql_repository):
        assert await sql_repository.get("nobody") is None

    @pytest.mark.asyncio
    async def test_create_then_get(self, sql_repository):
        await sql_repository.create("u1", UserStats.initial("u1", NOW))
        stats = await sql_repository.get("u1")
        assert stats is not None
        assert stats.uid == "u1"
        assert stats.total_xp == 0
        assert stats.current_level == 1
        assert stats.unlocked_badges == []
        assert stats.revision == 0

    @pytest.mark.asyncio
    async def test_duplicate_create_returns_existing(self, sql_repository):
        first = UserStats.initial("u1", NOW).model_copy(update={"display_name": "First"})
        second = UserStats.initial("u1", NOW).model_copy(update={"display_name": "Second"})
        await sql_repository.create("u1", first)
        stored = await sql_repository.create("u1", second)
        assert stored.display_name == "First"

    @pytest.mark.asyncio
    async def test_update_compare_and_set(self, sql_repository):
        await sql_repository.create("u1", UserStats.initial("u1", NOW))
        fields = {
            "total_xp": 110,
            "current_level": 2,
            "unlocked_badges": ["first_task", "early_bird"],
            "last_active_date": date(2026, 3, 2),
            "revision": 1,
        }
        assert await sql_repository.update("u1", fields, expected_revision=0) is True
        assert await sql_repository.update("u1", {"total_xp": 999, "revision": 1}, expected_revision=0) is False

        stats = await sql_repository.get("u1")
        assert stats.total_xp == 110
        assert stats.unlocked_badges == ["first_task", "early_bird"]
        assert stats.last_active_date == date(2026, 3, 2)
        assert stats.revision == 1

    @pytest.mark.asyncio
    async def test_update_missing_row(self, sql_repository):
        assert await sql_repository.update("ghost", {"total_xp": 1}, expected_revision=0) is False

    @pytest.mark.asyncio
    async def test_query_top_by_xp(self, sql_repository):
        for uid, xp in [("c", 50), ("a", 300), ("b", 300), ("d", 10)]:
            await sql_repository.create(uid, UserStats.initial(uid, NOW).model_copy(update={"total_xp": xp}))

        top = await sql_repository.query_top_by_xp(3)
        assert [s.uid for s in top] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_count_above_xp(self, sql_repository):
        for uid, xp in [("a", 300), ("b", 200), ("c", 200), ("d", 100)]:
            await sql_repository.create(uid, UserStats.initial(uid, NOW).model_copy(update={"total_xp": xp}))

        assert await sql_repository.count_above_xp(300, "a") == 0
        assert await sql_repository.count_above_xp(200, "b") == 1
        # Same XP, later uid: "b" is ordered first
        assert await sql_repository.count_above_xp(200, "c") == 2
        assert await sql_repository.count_above_xp(100, "d") == 3
        assert await sql_repository.count_above_xp(0, "zz") == 4

    @pytest.mark.asyncio
    async def test_connection_errors_become_persistence_errors(self):
        class RefusingSession:
            async def __aenter__(self):
                raise ConnectionRefusedError("connection refused")

            async def __aexit__(self, *exc_info):
                return False

        repo = SqlStatsRepository(lambda: RefusingSession())

        with pytest.raises(PersistenceError) as exc_info:
            await repo.query_top_by_xp(10)
        assert isinstance(exc_info.value.__cause__, ConnectionRefusedError)
        with pytest.raises(PersistenceError):
            await repo.count_above_xp(0, "u1")
        with pytest.raises(PersistenceError):
            await repo.update("u1", {"total_xp": 1}, expected_revision=0)

    @pytest.mark.asyncio
    async def test_ranker_degrades_on_connection_error(self):
        class RefusingSession:
            async def __aenter__(self):
                raise OSError("network unreachable")

            async def __aexit__(self, *exc_info):
                return False

        ranker = LeaderboardRanker(SqlStatsRepository(lambda: RefusingSession()), DemoPool(None))
        board = await ranker.top_n(5, current_uid="u1")
        assert board.total == 15
        assert all(e.is_demo for e in board.entries)

    @pytest.mark.asyncio
    async def test_driver_errors_become_persistence_errors(self, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        repo = SqlStatsRepository(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))
        try:
            with pytest.raises(PersistenceError) as exc_info:
                await repo.get("u1")
            assert exc_info.value.context["operation"] == "get"
            with pytest.raises(PersistenceError):
                await repo.query_top_by_xp(10)
        finally:
            await engine.dispose()


class TestEngineOverSql:
    """Full event flow through the SQL repository."""

    @pytest.mark.asyncio
    async def test_first_task_then_project(self, sql_repository, clock):
        engine = RewardsEngine(StatsStore(sql_repository, clock), clock)
        clock.at_hour(7)

        first = await engine.task_completed("u1")
        assert first.xp_awarded == 110

        clock.at_hour(12)
        second = await engine.project_created("u1")
        assert second.xp_awarded == 125

        stats = await sql_repository.get("u1")
        assert stats.total_xp == 235
        assert stats.current_level == 2
        assert stats.unlocked_badges == ["first_task", "early_bird", "first_project"]
        assert stats.revision == 2


class TestLeaderboardOverSql:

    @pytest.mark.asyncio
    async def test_caller_rank_below_fetch_window(self, sql_repository):
        for uid, xp in [("a", 300), ("b", 250), ("c", 200), ("d", 150), ("low", 100)]:
            await sql_repository.create(uid, UserStats.initial(uid, NOW).model_copy(update={"total_xp": xp}))

        ranker = LeaderboardRanker(sql_repository, DemoPool(None), fetch_limit=2)
        board = await ranker.top_n(2, current_uid="low")

        assert board.current_user.rank == 20
        assert board.total == 20


class TestDatabaseLifecycle:

    @pytest.mark.asyncio
    async def test_init_create_schema_close(self, tmp_path):
        await database.init_db(f"sqlite+aiosqlite:///{tmp_path / 'app.db'}")
        try:
            await database.create_schema()
            repo = SqlStatsRepository(database.get_session_factory())
            await repo.create("u1", UserStats.initial("u1", NOW))
            assert (await repo.get("u1")) is not None
        finally:
            await database.close_db()

        with pytest.raises(RuntimeError):
            database.get_engine()
