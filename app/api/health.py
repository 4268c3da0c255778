"""Health check endpoint."""

from fastapi import APIRouter, Request

from app.config import settings

router = APIRouter()


@router.get("/healthz", summary="Health check")
def health_check(request: Request) -> dict[str, str | int]:
    """Simple health check endpoint."""
    registry = getattr(request.app.state, "registry", None)
    return {
        "status": "ok",
        "env": settings.flightwatch_env,
        "activeTrackers": len(registry.list_active()) if registry is not None else 0,
    }
