"""
Alert notification data models.

- Required field: status (firing | resolved)
- Optional alerts list; any other Grafana/Alertmanager fields pass through
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class AlertPayload(BaseModel):
    """
    Webhook body sent by Grafana or Alertmanager.

    Only ``status`` is enforced. Everything else is kept as-is so the
    full notification can be logged.
    """

    status: Literal["firing", "resolved"] = Field(
        description="Group status reported by the sender"
    )
    alerts: Optional[List[Dict[str, Any]]] = Field(
        default=None,
        description="Individual alerts in the notification"
    )
    receiver: Optional[Any] = Field(
        default=None,
        description="Name of the receiver that sent the notification"
    )

    model_config = ConfigDict(extra="allow")

    @property
    def alert_count(self) -> int:
        return len(self.alerts) if self.alerts else 0


class IngestResponse(BaseModel):
    """Acknowledgment returned for an accepted notification."""

    status: str = Field(default="ok", description="Fixed status")
    message: str = Field(default="received", description="Fixed message")


class HealthResponse(BaseModel):
    status: str = Field(default="ok")


class StatsResponse(BaseModel):
    """Aggregate statistics, serialized with camelCase keys."""

    totalRequests: int = Field(description="Accepted ingestion requests")
    blockedRequests: int = Field(description="Requests rejected by the rate limiter")
    uptimeSeconds: int = Field(description="Seconds since process start")


class ErrorResponse(BaseModel):
    """
    Standard error response model.
    """

    error: str = Field(description="Error code")
    message: str = Field(description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Additional error details"
    )
