"""
Stagehand - Health Response Schema
==================================

What:  Response model for GET /health.
"""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    cache: str = Field(description="Response cache: connected, unreachable, disabled")
    uptime_seconds: float = Field(description="Seconds since service started")
