"""Leaderboard: real users blended with the demo pool, ranked by total XP.

Ranking is merge-then-rank:

1. union = demo pool (pool order) + real users (XP order); a uid present in
   both keeps only the real entry
2. stable sort by total XP, highest first, so ties keep union order
   (demo entries before real users, then pool / fetch order)
3. ranks 1..k assigned in sorted order

The caller's own row is reported separately with its true rank so the UI can
show "your position" even outside the top N. Below the real-user fetch window
that rank is counted in storage, not taken from the partial list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fairytale.rewards.demo_pool import DemoPool
from fairytale.rewards.errors import PersistenceError, ValidationError
from fairytale.rewards.repository import StatsRepository
from fairytale.rewards.schemas import LeaderboardEntry, LeaderboardResponse, UserStats

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_NAME = "User"


@dataclass
class Leaderboard:
    entries: list[LeaderboardEntry]
    current_user: LeaderboardEntry | None
    total: int

    def rows(self) -> list[LeaderboardEntry]:
        """Top entries plus the caller's row when it falls outside them."""
        if self.current_user is None or any(e.is_current_user for e in self.entries):
            return list(self.entries)
        return [*self.entries, self.current_user]

    def to_response(self) -> LeaderboardResponse:
        return LeaderboardResponse(
            entries=self.entries,
            current_user=self.current_user,
            rows=self.rows(),
            total=self.total,
        )


def entry_from_stats(stats: UserStats) -> LeaderboardEntry:
    return LeaderboardEntry(
        uid=stats.uid,
        display_name=stats.display_name or DEFAULT_DISPLAY_NAME,
        total_xp=stats.total_xp,
        current_level=stats.current_level,
        total_tasks_completed=stats.total_tasks_completed,
        longest_streak=stats.longest_streak,
        is_demo=False,
    )


def rank_leaderboard(
    real: list[LeaderboardEntry],
    demo: list[LeaderboardEntry],
    limit: int,
    current_uid: str | None = None,
) -> Leaderboard:
    """Merge, sort and rank. Pure: inputs are not modified."""
    if limit < 1:
        msg = f"Leaderboard limit must be >= 1, got {limit}"
        raise ValidationError(msg, limit=limit)

    real_uids = {e.uid for e in real}
    union: list[LeaderboardEntry] = [e for e in demo if e.uid not in real_uids]

    seen: set[str] = set()
    for entry in real:
        if entry.uid in seen:
            continue
        seen.add(entry.uid)
        union.append(entry)

    ordered = sorted(union, key=lambda e: -e.total_xp)
    ranked = [
        e.model_copy(update={"rank": position, "is_current_user": e.uid == current_uid})
        for position, e in enumerate(ordered, start=1)
    ]

    current = next((e for e in ranked if e.is_current_user), None) if current_uid else None
    return Leaderboard(entries=ranked[:limit], current_user=current, total=len(ranked))


def place_below_window(
    board: Leaderboard,
    own: LeaderboardEntry,
    window: list[LeaderboardEntry],
    demo: list[LeaderboardEntry],
    real_above: int,
) -> Leaderboard:
    """Attach the caller's row when they sit below the real-user fetch window.

    ``real_above`` counts every real user ordered before the caller, including
    those between the window and the caller. Demo entries win XP ties.
    """
    window_uids = {e.uid for e in window}
    demo_above = sum(
        1 for e in demo
        if e.uid not in window_uids and e.uid != own.uid and e.total_xp >= own.total_xp
    )
    current = own.model_copy(update={"rank": real_above + demo_above + 1, "is_current_user": True})
    hidden = max(real_above - len(window), 0)
    return Leaderboard(entries=board.entries, current_user=current, total=board.total + hidden + 1)


class LeaderboardRanker:
    """Fetches real stats and the demo pool, then ranks them."""

    def __init__(
        self,
        repository: StatsRepository,
        demo_pool: DemoPool,
        fetch_limit: int = 50,
    ) -> None:
        self._repository = repository
        self._demo_pool = demo_pool
        self._fetch_limit = fetch_limit

    async def top_n(self, n: int, current_uid: str | None = None) -> Leaderboard:
        """Ranked view; storage failures degrade to the demo pool alone."""
        demo = await self._demo_pool.load()
        # The window must cover the top n, so anyone outside it ranks below n
        window = await self._fetch_window(max(self._fetch_limit, n))

        if not current_uid or any(e.uid == current_uid for e in window) or not window:
            return rank_leaderboard(window, demo, n, current_uid)

        below = await self._fetch_below_window(current_uid)
        if below is None:
            return rank_leaderboard(window, demo, n, current_uid)

        own, real_above = below
        demo = [e for e in demo if e.uid != own.uid]
        board = rank_leaderboard(window, demo, n)
        return place_below_window(board, own, window, demo, real_above)

    async def _fetch_window(self, limit: int) -> list[LeaderboardEntry]:
        try:
            top = await self._repository.query_top_by_xp(limit)
        except PersistenceError:
            logger.warning("Leaderboard fetch failed, ranking demo pool only", exc_info=True)
            return []
        return [entry_from_stats(s) for s in top]

    async def _fetch_below_window(self, uid: str) -> tuple[LeaderboardEntry, int] | None:
        try:
            own = await self._repository.get(uid)
            if own is None:
                return None
            real_above = await self._repository.count_above_xp(own.total_xp, own.uid)
        except PersistenceError:
            logger.warning("Failed to place current user on leaderboard", exc_info=True)
            return None
        return entry_from_stats(own), real_above
