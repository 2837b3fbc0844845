"""FastAPI API endpoints under /api.

Endpoint groups: health, players, characters, games (create, snapshot,
interaction log, turn) and leaderboard (save, top, recent, stats, last game).
"""

from fastapi import APIRouter

from .characters import router as characters_router
from .games import router as games_router
from .leaderboard import router as leaderboard_router
from .system import router as system_router
from .users import router as users_router

router = APIRouter()
router.include_router(system_router)
router.include_router(users_router)
router.include_router(characters_router)
router.include_router(games_router)
router.include_router(leaderboard_router)
