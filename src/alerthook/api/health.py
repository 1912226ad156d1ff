"""
Health and statistics endpoints.

- /health: liveness, always 200 while the process is serving
- /stats: aggregate request counters and uptime
"""

import structlog
from fastapi import APIRouter, Request

from ..core.counters import GlobalStats
from ..models.alert import HealthResponse, StatsResponse

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness probe",
)
async def health_check() -> HealthResponse:
    """
    Liveness probe - always returns 200 if service is alive.
    """
    return HealthResponse(status="ok")


@router.get(
    "/stats",
    response_model=StatsResponse,
    summary="Request statistics",
    description="""
    Snapshot of the in-memory counters.

    - totalRequests: accepted alert notifications
    - blockedRequests: requests rejected by the rate limiter
    - uptimeSeconds: seconds since the process started

    Counters reset when the process restarts.
    """,
)
async def get_stats(request: Request) -> StatsResponse:
    stats: GlobalStats = request.app.state.stats
    snapshot = stats.snapshot()
    return StatsResponse(
        totalRequests=snapshot.total_requests,
        blockedRequests=snapshot.blocked_requests,
        uptimeSeconds=snapshot.uptime_seconds,
    )
