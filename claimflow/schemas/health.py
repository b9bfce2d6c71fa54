"""Health check schemas."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    ai_enabled: bool = False
    database_configured: bool = False
