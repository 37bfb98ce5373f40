"""Response DTOs for API endpoints."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Overall health status: healthy or unhealthy")
    store_healthy: bool = Field(..., description="Whether the cache store is reachable")
