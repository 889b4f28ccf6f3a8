"""Pydantic response models for the recognizer proxy's HTTP endpoints.

WHY: The health and status endpoints are polled by the remote recognizer
client and by deployment tooling. Typed models give them a stable JSON
shape and document it in the /docs UI.

RULES:
- Wire names are camelCase (speechClient, activeConnections); Python
  code uses snake_case and FastAPI serializes by alias
- All fields carry Field(description=...) for OpenAPI documentation
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Health check response.

    WHY: Clients check this before opening a websocket, so a server
    without speech credentials can be detected up front.
    """

    model_config = ConfigDict(populate_by_name=True)

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    speech_client: bool = Field(
        alias="speechClient",
        description="Whether a speech recognition backend is configured.",
    )
    active_connections: int = Field(
        alias="activeConnections",
        description="Number of open websocket connections.",
    )


class StatusResponse(BaseModel):
    """Readiness of the speech backend, with a message for display."""

    ready: bool = Field(description="True when recognition requests can be served.")
    message: str = Field(
        description="Human-readable readiness message.",
        json_schema_extra={"example": "Speech-to-Text API ready"},
    )
