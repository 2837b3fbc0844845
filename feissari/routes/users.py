"""Player name registration endpoints."""

from fastapi import APIRouter, HTTPException, Request

from feissari.models import Player
from feissari.storage import utcnow

from .deps import get_engine
from .models import CreatePlayer

router = APIRouter()


@router.post("/user", status_code=201)
async def save_user(body: CreatePlayer, request: Request):
    """Save a display name for an owner id."""
    if not isinstance(body.name, str) or not body.name.strip():
        raise HTTPException(400, "Invalid name: name is required and must be a non-empty string")
    if not isinstance(body.owner_id, str) or not body.owner_id.strip():
        raise HTTPException(400, "Invalid owner_id: owner_id is required and must be a non-empty string")
    player = Player(owner_id=body.owner_id.strip(), name=body.name.strip(), created_at=utcnow())
    get_engine(request).storage.save_player(player)
    return {"owner_id": player.owner_id, "name": player.name}


@router.get("/user/{owner_id}")
async def get_user(owner_id: str, request: Request):
    """Fetch the display name saved for an owner id."""
    player = get_engine(request).storage.get_player(owner_id)
    if not player:
        raise HTTPException(404, "User not found")
    return player
