"""
Pydantic models for the relay endpoint.

Model Categories:
    - Tunnel Models: Validated tunnel destination
    - Health Responses: Liveness check payload
"""

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Tunnel Models
# =============================================================================


class TargetAddress(BaseModel):
    """Destination of a tunnel, parsed from the target header."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(..., min_length=1, description="Target hostname or IP")
    port: int = Field(..., ge=1, le=65535, description="Target TCP port")

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


# =============================================================================
# Health Responses
# =============================================================================


class HealthResponse(BaseModel):
    """Response for the health endpoint."""

    status: str = Field("ok", description="Service status")
    version: str = Field(..., description="wsrelay version")
