"""Health check endpoint."""

from fastapi import APIRouter

from newsletter_scheduler import __version__

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {"status": "ok", "version": __version__}
