"""Badge catalog: static badge definitions and unlock evaluation."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from fairytale.rewards.schemas import BadgeResponse, UserStats


@dataclass(frozen=True)
class BadgeDefinition:
    """A one-time achievement unlocked when ``counter >= threshold``."""

    id: str
    name: str
    description: str
    icon: str
    xp_reward: int
    counter: str
    threshold: int

    def is_unlocked_by(self, stats: UserStats) -> bool:
        """Monotone threshold predicate over a stats snapshot."""
        return getattr(stats, self.counter) >= self.threshold

    def to_response(self, unlocked: bool = False) -> BadgeResponse:
        return BadgeResponse(
            id=self.id,
            name=self.name,
            description=self.description,
            icon=self.icon,
            xp_reward=self.xp_reward,
            unlocked=unlocked,
        )


DEFAULT_BADGES: tuple[BadgeDefinition, ...] = (
    # Tasks
    BadgeDefinition("first_task", "Getting Started", "Complete your first task", "badge-1", 50, "total_tasks_completed", 1),
    BadgeDefinition("ten_tasks", "Task Master", "Complete 10 tasks", "badge-2", 100, "total_tasks_completed", 10),
    BadgeDefinition("fifty_tasks", "Productivity Pro", "Complete 50 tasks", "badge-3", 250, "total_tasks_completed", 50),
    BadgeDefinition("hundred_tasks", "Task Champion", "Complete 100 tasks", "badge-4", 500, "total_tasks_completed", 100),
    # Projects
    BadgeDefinition("first_project", "Project Starter", "Create your first project", "badge-5", 75, "total_projects_created", 1),
    BadgeDefinition("five_projects", "Project Manager", "Create 5 projects", "badge-6", 200, "total_projects_created", 5),
    BadgeDefinition("project_completed", "Goal Getter", "Complete your first project", "badge-7", 150, "total_projects_completed", 1),
    # Streaks
    BadgeDefinition("streak_7", "Consistency King", "Maintain a 7-day streak", "badge-8", 150, "longest_streak", 7),
    BadgeDefinition("streak_30", "Unstoppable", "Maintain a 30-day streak", "badge-9", 500, "longest_streak", 30),
    # Team
    BadgeDefinition("team_player", "Team Player", "Add your first team member", "badge-10", 75, "total_team_members", 1),
    # Time of day
    BadgeDefinition("early_bird", "Early Bird", "Complete a task before 8 AM", "badge-11", 50, "early_bird_tasks", 1),
    BadgeDefinition("night_owl", "Night Owl", "Complete a task after 11 PM", "badge-12", 50, "night_owl_tasks", 1),
)


class BadgeCatalog:
    """Immutable, ordered registry of badge definitions."""

    def __init__(self, badges: Iterable[BadgeDefinition] = DEFAULT_BADGES) -> None:
        self._badges: tuple[BadgeDefinition, ...] = tuple(badges)
        self._by_id = {b.id: b for b in self._badges}
        if len(self._by_id) != len(self._badges):
            msg = "Badge ids must be unique"
            raise ValueError(msg)
        unknown = [b.id for b in self._badges if b.counter not in UserStats.model_fields]
        if unknown:
            msg = f"Badges reference unknown stats fields: {unknown}"
            raise ValueError(msg)

    def __iter__(self) -> Iterator[BadgeDefinition]:
        return iter(self._badges)

    def __len__(self) -> int:
        return len(self._badges)

    def get(self, badge_id: str) -> BadgeDefinition | None:
        return self._by_id.get(badge_id)

    def evaluate(self, stats: UserStats) -> list[BadgeDefinition]:
        """Badges newly satisfied by ``stats``, in declaration order.

        Already-unlocked badges are skipped without re-checking their predicate.
        """
        unlocked = set(stats.unlocked_badges)
        return [
            badge for badge in self._badges
            if badge.id not in unlocked and badge.is_unlocked_by(stats)
        ]

    def partition(self, stats: UserStats) -> tuple[list[BadgeDefinition], list[BadgeDefinition]]:
        """Split the catalog into (unlocked, locked) for ``stats``."""
        unlocked = set(stats.unlocked_badges)
        earned = [b for b in self._badges if b.id in unlocked]
        locked = [b for b in self._badges if b.id not in unlocked]
        return earned, locked


DEFAULT_BADGE_CATALOG = BadgeCatalog()
