"""Pydantic request models for API endpoints."""

from typing import Any

from pydantic import BaseModel


class CreatePlayer(BaseModel):
    name: Any = None
    owner_id: Any = None


class CreateGame(BaseModel):
    owner_id: Any = None


class TurnBody(BaseModel):
    message: Any = None


class SaveResult(BaseModel):
    session_id: str
