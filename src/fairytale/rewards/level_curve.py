"""Level curve: total XP to level and back.

Level 1 needs 100 XP to reach level 2; every later level costs 1.5x the
previous one, floored: ``floor(100 * 1.5 ** (level - 1))``.

    level  requirement  cumulative
    1      100          0
    2      150          100
    3      225          250
    4      337          475
    5      506          812
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from pydantic import BaseModel


class LevelProgress(BaseModel):
    level: int
    total_xp: int
    xp_into_level: int
    xp_for_level: int
    xp_to_next_level: int
    percent: float


class LevelThreshold(BaseModel):
    level: int
    xp_required: int
    cumulative: int


@dataclass(frozen=True)
class LevelCurve:
    """Immutable exponential level curve."""

    base_xp: int = 100
    growth: float = 1.5

    def xp_required_for_level(self, level: int) -> int:
        """XP needed to go from ``level`` to ``level + 1``."""
        if level < 1:
            msg = f"Level must be >= 1, got {level}"
            raise ValueError(msg)
        return math.floor(self.base_xp * self.growth ** (level - 1))

    def cumulative_xp_for_level(self, level: int) -> int:
        """Total XP at which ``level`` is reached."""
        if level < 1:
            msg = f"Level must be >= 1, got {level}"
            raise ValueError(msg)
        return sum(self.xp_required_for_level(i) for i in range(1, level))

    def level_for_xp(self, xp: int) -> int:
        """Highest level whose cumulative threshold ``xp`` has reached."""
        if xp < 0:
            msg = f"XP must be non-negative, got {xp}"
            raise ValueError(msg)

        level = 1
        cumulative = 0
        requirement = self.xp_required_for_level(level)
        while cumulative + requirement <= xp:
            cumulative += requirement
            level += 1
            requirement = self.xp_required_for_level(level)
        return level

    def xp_within_current_level(self, total_xp: int, level: int) -> int:
        """XP earned since ``level`` was reached."""
        return total_xp - self.cumulative_xp_for_level(level)

    def progress(self, total_xp: int) -> LevelProgress:
        """Progress-bar view of ``total_xp``."""
        level = self.level_for_xp(total_xp)
        into = self.xp_within_current_level(total_xp, level)
        needed = self.xp_required_for_level(level)
        return LevelProgress(
            level=level,
            total_xp=total_xp,
            xp_into_level=into,
            xp_for_level=needed,
            xp_to_next_level=needed - into,
            percent=round(into / needed * 100, 2),
        )

    def thresholds(self, up_to: int) -> list[LevelThreshold]:
        """Requirement table for levels ``1..up_to``."""
        table = []
        cumulative = 0
        for level in range(1, up_to + 1):
            required = self.xp_required_for_level(level)
            table.append(LevelThreshold(level=level, xp_required=required, cumulative=cumulative))
            cumulative += required
        return table


DEFAULT_LEVEL_CURVE = LevelCurve()
