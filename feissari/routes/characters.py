"""Character catalog endpoint (read-only)."""

from fastapi import APIRouter, Request

from .deps import get_engine

router = APIRouter()


@router.get("/characters")
async def list_characters(request: Request):
    """List all registered characters in rotation order."""
    return get_engine(request).registry.list_all()
