"""Day-based streak continuation and reset."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from fairytale.rewards.schemas import StreakAdvance, UserStats


@dataclass(frozen=True)
class StreakTracker:
    """Advances a daily streak given the caller-supplied ``today``.

    Dates are compared at day granularity. Backdated or skewed dates are the
    caller's concern.
    """

    day_bonus: int = 5
    week_bonus: int = 25
    week_length: int = 7

    def advance(self, stats: UserStats, today: date) -> StreakAdvance:
        last = stats.last_active_date

        if last == today:
            return StreakAdvance(
                current_streak=stats.current_streak,
                longest_streak=stats.longest_streak,
                xp_bonus=0,
                last_active_date=today,
                changed=False,
            )

        if last is not None and last == today - timedelta(days=1):
            current = stats.current_streak + 1
            bonus = self.day_bonus
            if current % self.week_length == 0:
                bonus += self.week_bonus
        else:
            # First activity ever, or a gap of two days or more
            current = 1
            bonus = self.day_bonus

        return StreakAdvance(
            current_streak=current,
            longest_streak=max(stats.longest_streak, current),
            xp_bonus=bonus,
            last_active_date=today,
            changed=True,
        )


DEFAULT_STREAK_TRACKER = StreakTracker()
