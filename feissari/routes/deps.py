"""Shared route helpers."""

from fastapi import HTTPException, Request

from feissari.errors import GameError
from feissari.game import GameEngine


def get_engine(request: Request) -> GameEngine:
    return request.app.state.engine


def http_error(e: GameError) -> HTTPException:
    return HTTPException(e.status_code, str(e))
