"""Health check endpoint. No dependencies; used for liveness checks."""

from fastapi import APIRouter

from claimflow.core.config import get_settings
from claimflow.schemas.health import HealthResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Return ok status plus which optional backends are configured."""
    settings = get_settings()
    return HealthResponse(
        ai_enabled=settings.ai_configured,
        database_configured=bool(settings.database_url),
    )
