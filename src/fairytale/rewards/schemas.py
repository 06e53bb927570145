"""Pydantic models for rewards state and responses."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field

from fairytale.rewards.level_curve import LevelProgress, LevelThreshold

COUNTER_FIELDS: tuple[str, ...] = (
    "total_tasks_completed",
    "total_tasks_created",
    "total_projects_created",
    "total_projects_completed",
    "total_team_members",
    "early_bird_tasks",
    "night_owl_tasks",
)


class RewardEvent(str, Enum):
    """Domain events that move a user's progression."""

    TASK_COMPLETED = "task_completed"
    TASK_CREATED = "task_created"
    PROJECT_CREATED = "project_created"
    PROJECT_COMPLETED = "project_completed"
    TEAM_MEMBER_ADDED = "team_member_added"
    DAILY_ACTIVITY = "daily_activity"


# --- Stats ---


class UserStats(BaseModel):
    """Per-user progression record. Every field is always present."""

    uid: str
    display_name: str | None = None
    total_xp: int = 0
    current_level: int = 1
    total_tasks_completed: int = 0
    total_tasks_created: int = 0
    total_projects_created: int = 0
    total_projects_completed: int = 0
    total_team_members: int = 0
    early_bird_tasks: int = 0
    night_owl_tasks: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_active_date: date | None = None
    unlocked_badges: list[str] = Field(default_factory=list)
    revision: int = 0
    created_at: datetime
    updated_at: datetime

    @classmethod
    def initial(cls, uid: str, now: datetime) -> UserStats:
        """Zero-state record for a user seen for the first time."""
        return cls(uid=uid, created_at=now, updated_at=now)

    def has_badge(self, badge_id: str) -> bool:
        return badge_id in self.unlocked_badges


class StatsResponse(BaseModel):
    stats: UserStats
    level: LevelProgress


# --- Streak ---


class StreakAdvance(BaseModel):
    """Result of advancing a streak by one calendar day of activity."""

    current_streak: int
    longest_streak: int
    xp_bonus: int
    last_active_date: date
    changed: bool


# --- Badges ---


class BadgeResponse(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    xp_reward: int
    unlocked: bool = False


class BadgesResponse(BaseModel):
    unlocked: list[BadgeResponse]
    locked: list[BadgeResponse]
    total_available: int
    total_unlocked: int


# --- Levels ---


class LevelsResponse(BaseModel):
    levels: list[LevelThreshold]


# --- Events ---


class RewardOutcome(BaseModel):
    """What one domain event did to a user's progression."""

    event: RewardEvent
    uid: str
    xp_awarded: int
    base_xp: int
    badges: list[BadgeResponse]
    old_level: int
    new_level: int
    leveled_up: bool
    streak: StreakAdvance | None = None
    stats: UserStats


# --- Leaderboard ---


class LeaderboardEntry(BaseModel):
    rank: int = 0
    uid: str
    display_name: str
    total_xp: int
    current_level: int
    total_tasks_completed: int = 0
    longest_streak: int = 0
    is_demo: bool = False
    is_current_user: bool = False


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntry]
    current_user: LeaderboardEntry | None = None
    # entries plus the caller's row when it falls outside them
    rows: list[LeaderboardEntry]
    total: int
