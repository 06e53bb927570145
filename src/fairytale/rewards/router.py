"""Rewards API endpoints for the UI layer."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from fairytale.config import get_settings
from fairytale.dependencies import get_current_uid, get_leaderboard_ranker, get_rewards_engine
from fairytale.rewards.engine import RewardsEngine
from fairytale.rewards.leaderboard import LeaderboardRanker
from fairytale.rewards.schemas import (
    BadgesResponse,
    LeaderboardResponse,
    LevelsResponse,
    RewardOutcome,
    StatsResponse,
)

router = APIRouter(prefix="/api/v1/rewards", tags=["Rewards"])


@router.get("/stats", response_model=StatsResponse)
async def get_my_stats(
    uid: str = Depends(get_current_uid),
    engine: RewardsEngine = Depends(get_rewards_engine),
):
    """Current user's progression snapshot with level progress."""
    stats = await engine.store.read(uid)
    return StatsResponse(stats=stats, level=engine.store.level_curve.progress(stats.total_xp))


@router.get("/badges", response_model=BadgesResponse)
async def get_my_badges(
    uid: str = Depends(get_current_uid),
    engine: RewardsEngine = Depends(get_rewards_engine),
):
    """Badge catalog split into unlocked and locked for the current user."""
    stats = await engine.store.read(uid)
    unlocked, locked = engine.catalog.partition(stats)
    return BadgesResponse(
        unlocked=[b.to_response(unlocked=True) for b in unlocked],
        locked=[b.to_response() for b in locked],
        total_available=len(engine.catalog),
        total_unlocked=len(unlocked),
    )


@router.get("/levels", response_model=LevelsResponse)
async def list_levels(
    up_to: int = Query(20, ge=1, le=100),
    engine: RewardsEngine = Depends(get_rewards_engine),
):
    """Level requirement table."""
    return LevelsResponse(levels=engine.store.level_curve.thresholds(up_to))


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    limit: int | None = Query(None, ge=1, le=50),
    uid: str = Depends(get_current_uid),
    ranker: LeaderboardRanker = Depends(get_leaderboard_ranker),
):
    """Top entries plus the caller's own position."""
    size = limit or get_settings().leaderboard_default_size
    board = await ranker.top_n(size, current_uid=uid)
    return board.to_response()


@router.post("/events/{event_type}", response_model=RewardOutcome)
async def post_event(
    event_type: str,
    uid: str = Depends(get_current_uid),
    engine: RewardsEngine = Depends(get_rewards_engine),
):
    """Apply a domain event (task_completed, project_created, ...)."""
    return await engine.handle(event_type, uid)


@router.post("/activity", response_model=RewardOutcome)
async def post_activity(
    uid: str = Depends(get_current_uid),
    engine: RewardsEngine = Depends(get_rewards_engine),
):
    """Record today's activity for the daily streak."""
    return await engine.record_activity(uid)
