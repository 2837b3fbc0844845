"""Leaderboard endpoints."""

from fastapi import APIRouter, Query, Request

from feissari.errors import GameError

from .deps import get_engine, http_error
from .models import SaveResult

router = APIRouter()


@router.post("/leaderboard")
async def save_result(body: SaveResult, request: Request):
    """Record an ended game's score. Repeated calls return the same entry."""
    try:
        return get_engine(request).record_result(body.session_id)
    except GameError as e:
        raise http_error(e)


@router.get("/leaderboard/top")
async def top(request: Request, owner_id: str | None = None, limit: int | None = Query(None, gt=0, le=100)):
    """Best scores, with the caller's best entry and rank."""
    limit = limit or request.app.state.config.leaderboard_limit
    return get_engine(request).leaderboard.top(limit, owner_id)


@router.get("/leaderboard/recent")
async def recent(request: Request, owner_id: str | None = None, limit: int | None = Query(None, gt=0, le=100)):
    """Latest games, with the caller's latest entry and position."""
    limit = limit or request.app.state.config.leaderboard_limit
    return get_engine(request).leaderboard.recent(limit, owner_id)


@router.get("/leaderboard/stats")
async def stats(request: Request):
    """Total games played and the estimated LLM spend."""
    return get_engine(request).leaderboard.stats()


@router.get("/leaderboard/last-game")
async def last_game(owner_id: str, request: Request):
    """The caller's most recent game result."""
    try:
        return get_engine(request).leaderboard.last_game(owner_id)
    except GameError as e:
        raise http_error(e)
