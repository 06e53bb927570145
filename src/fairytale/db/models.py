"""ORM models for rewards persistence."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, BigInteger, Date, DateTime, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from fairytale.db.base import Base

# JSONB on PostgreSQL, plain JSON elsewhere (tests run on SQLite).
_BadgeList = JSON().with_variant(JSONB(), "postgresql")


# ---------------------------------------------------------------------------
# Rewards: per-user progression record
# ---------------------------------------------------------------------------


class UserStatsRow(Base):
    """Progression summary, single row per user, O(1) reads."""

    __tablename__ = "user_stats"
    __table_args__ = (
        Index("idx_user_stats_total_xp", "total_xp"),
    )

    uid: Mapped[str] = mapped_column(String(128), primary_key=True)
    display_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    total_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="0")
    current_level: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    total_tasks_completed: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    total_tasks_created: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    total_projects_created: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    total_projects_completed: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    total_team_members: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    early_bird_tasks: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    night_owl_tasks: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    last_active_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    unlocked_badges: Mapped[list[Any]] = mapped_column(_BadgeList, nullable=False, default=list)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
