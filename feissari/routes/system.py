"""Health check endpoint."""

import time

from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok", "timestamp": int(time.time() * 1000)}
