"""Game session endpoints: create, inspect, and play turns."""

from fastapi import APIRouter, Request

from feissari.errors import GameError

from .deps import get_engine, http_error
from .models import CreateGame, TurnBody

router = APIRouter()


@router.post("/games", status_code=201)
async def create_game(request: Request, body: CreateGame | None = None):
    """Start a new game for an owner id."""
    try:
        return get_engine(request).create_session(body.owner_id if body else None)
    except GameError as e:
        raise http_error(e)


@router.get("/games/{session_id}")
async def get_game(session_id: str, request: Request):
    """Get a game's state with live balance, defeats and remaining time."""
    try:
        return get_engine(request).get_session(session_id)
    except GameError as e:
        raise http_error(e)


@router.get("/games/{session_id}/interactions")
async def get_interactions(session_id: str, request: Request):
    """Get a game's full interaction log, oldest first."""
    try:
        return get_engine(request).get_interactions(session_id)
    except GameError as e:
        raise http_error(e)


@router.post("/games/{session_id}/turn")
async def play_turn(session_id: str, request: Request, body: TurnBody | None = None):
    """Send a player message (or null for an opening line) and get the reply.

    A missing body is the same as `{"message": null}`.
    """
    message = body.message if body else None
    try:
        return await get_engine(request).advance_turn(session_id, message)
    except GameError as e:
        raise http_error(e)
