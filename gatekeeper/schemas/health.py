"""Pydantic schemas for the health check response."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Liveness plus storage reachability, for load balancers."""

    status: Literal["ok", "degraded"] = Field(default="ok", description="Service status")
    service: str = Field(default="gatekeeper", description="Service name")
    environment: str = Field(description="Current app environment (dev or prod)")
    database: Literal["connected", "disconnected"] = Field(
        description="Whether the users/sessions store answered a trivial query",
    )
