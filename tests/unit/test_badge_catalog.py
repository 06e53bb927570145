"""Badge catalog tests: thresholds, permanence, ordering."""

from datetime import datetime, timezone

import pytest

from fairytale.rewards.badge_catalog import DEFAULT_BADGES, BadgeCatalog, BadgeDefinition
from fairytale.rewards.schemas import UserStats


def make_stats(**fields) -> UserStats:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    return UserStats(uid="u1", created_at=now, updated_at=now, **fields)


class TestCatalogContents:
    """Default catalog matches the published badge table."""

    def test_twelve_badges(self):
        assert len(BadgeCatalog()) == 12

    @pytest.mark.parametrize(
        "badge_id,counter,threshold,xp_reward",
        [
            ("first_task", "total_tasks_completed", 1, 50),
            ("ten_tasks", "total_tasks_completed", 10, 100),
            ("fifty_tasks", "total_tasks_completed", 50, 250),
            ("hundred_tasks", "total_tasks_completed", 100, 500),
            ("first_project", "total_projects_created", 1, 75),
            ("five_projects", "total_projects_created", 5, 200),
            ("project_completed", "total_projects_completed", 1, 150),
            ("streak_7", "longest_streak", 7, 150),
            ("streak_30", "longest_streak", 30, 500),
            ("team_player", "total_team_members", 1, 75),
            ("early_bird", "early_bird_tasks", 1, 50),
            ("night_owl", "night_owl_tasks", 1, 50),
        ],
    )
    def test_badge_definition(self, badge_id, counter, threshold, xp_reward):
        badge = BadgeCatalog().get(badge_id)
        assert badge is not None
        assert badge.counter == counter
        assert badge.threshold == threshold
        assert badge.xp_reward == xp_reward

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError):
            BadgeCatalog([DEFAULT_BADGES[0], DEFAULT_BADGES[0]])

    def test_unknown_counter_rejected(self):
        bad = BadgeDefinition("x", "X", "x", "icon", 1, "no_such_field", 1)
        with pytest.raises(ValueError):
            BadgeCatalog([bad])


class TestEvaluate:
    """evaluate() returns newly satisfied badges only."""

    def test_fresh_stats_unlock_nothing(self):
        assert BadgeCatalog().evaluate(make_stats()) == []

    def test_threshold_is_inclusive(self):
        result = BadgeCatalog().evaluate(make_stats(total_tasks_completed=10))
        assert [b.id for b in result] == ["first_task", "ten_tasks"]

    def test_below_threshold(self):
        result = BadgeCatalog().evaluate(make_stats(total_tasks_completed=9))
        assert [b.id for b in result] == ["first_task"]

    def test_declaration_order(self):
        stats = make_stats(
            total_tasks_completed=1,
            night_owl_tasks=1,
            total_projects_created=1,
            longest_streak=7,
        )
        result = BadgeCatalog().evaluate(stats)
        assert [b.id for b in result] == ["first_task", "first_project", "streak_7", "night_owl"]

    def test_already_unlocked_skipped(self):
        stats = make_stats(total_tasks_completed=10, unlocked_badges=["first_task"])
        result = BadgeCatalog().evaluate(stats)
        assert [b.id for b in result] == ["ten_tasks"]

    def test_unlocked_badge_never_rechecked(self):
        """A recorded badge stays out of the result even if its counter were lower."""
        stats = make_stats(total_tasks_completed=0, unlocked_badges=["first_task"])
        assert BadgeCatalog().evaluate(stats) == []

    def test_streak_badges_use_longest_streak(self):
        stats = make_stats(current_streak=1, longest_streak=30)
        result = BadgeCatalog().evaluate(stats)
        assert {b.id for b in result} == {"streak_7", "streak_30"}


class TestPartition:
    """Unlocked / locked split for the badge screen."""

    def test_partition(self):
        catalog = BadgeCatalog()
        stats = make_stats(unlocked_badges=["night_owl", "first_task"])
        unlocked, locked = catalog.partition(stats)
        assert [b.id for b in unlocked] == ["first_task", "night_owl"]
        assert len(locked) == 10
        assert not {b.id for b in locked} & {"first_task", "night_owl"}
