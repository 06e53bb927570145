"""Stats persistence: the repository interface and its SQLAlchemy implementation."""

from __future__ import annotations

from typing import Any, Protocol

import structlog
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fairytale.db.models import UserStatsRow
from fairytale.rewards.errors import PersistenceError
from fairytale.rewards.schemas import UserStats

logger = structlog.get_logger()


class StatsRepository(Protocol):
    """What the rewards core needs from the document store."""

    async def get(self, uid: str) -> UserStats | None: ...

    async def create(self, uid: str, stats: UserStats) -> UserStats: ...

    async def update(self, uid: str, fields: dict[str, Any], expected_revision: int) -> bool:
        """Apply ``fields`` only if the stored revision still equals ``expected_revision``."""
        ...

    async def query_top_by_xp(self, limit: int) -> list[UserStats]: ...

    async def count_above_xp(self, total_xp: int, uid: str) -> int:
        """Rows ordered before (``total_xp``, ``uid``) in ``query_top_by_xp`` order."""
        ...


def _to_stats(row: UserStatsRow) -> UserStats:
    return UserStats.model_validate(row, from_attributes=True)


class SqlStatsRepository:
    """``user_stats`` table access, one short session per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, uid: str) -> UserStats | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(UserStatsRow).where(UserStatsRow.uid == uid)
                )
                row = result.scalar_one_or_none()
                return _to_stats(row) if row is not None else None
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceError("Failed to read user stats", uid=uid, operation="get") from exc

    async def create(self, uid: str, stats: UserStats) -> UserStats:
        try:
            async with self._session_factory() as session:
                session.add(UserStatsRow(**stats.model_dump()))
                try:
                    await session.commit()
                except IntegrityError:
                    # Race condition: another session created the row first
                    await session.rollback()
                    logger.info("user_stats_create_race", uid=uid)
                    existing = await session.execute(
                        select(UserStatsRow).where(UserStatsRow.uid == uid)
                    )
                    return _to_stats(existing.scalar_one())
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceError("Failed to create user stats", uid=uid, operation="create") from exc
        return stats

    async def update(self, uid: str, fields: dict[str, Any], expected_revision: int) -> bool:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(UserStatsRow)
                    .where(
                        UserStatsRow.uid == uid,
                        UserStatsRow.revision == expected_revision,
                    )
                    .values(**fields)
                )
                await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceError(
                "Failed to update user stats",
                uid=uid,
                operation="update",
                fields=sorted(fields),
            ) from exc
        return result.rowcount == 1

    async def query_top_by_xp(self, limit: int) -> list[UserStats]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(UserStatsRow)
                    .order_by(UserStatsRow.total_xp.desc(), UserStatsRow.uid.asc())
                    .limit(limit)
                )
                return [_to_stats(row) for row in result.scalars()]
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceError("Failed to query leaderboard stats", operation="query_top_by_xp") from exc

    async def count_above_xp(self, total_xp: int, uid: str) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(func.count())
                    .select_from(UserStatsRow)
                    .where(
                        or_(
                            UserStatsRow.total_xp > total_xp,
                            and_(UserStatsRow.total_xp == total_xp, UserStatsRow.uid < uid),
                        )
                    )
                )
                return result.scalar_one()
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceError("Failed to count leaderboard stats", uid=uid, operation="count_above_xp") from exc
