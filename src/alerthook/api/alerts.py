"""
Alert ingestion endpoint.

Main endpoint: POST /test
"""

import structlog
from fastapi import APIRouter, Depends, Request

from ..core.counters import GlobalStats
from ..core.exceptions import ValidationError
from ..core.pipeline import GuardChain, RequestContext
from ..core.sound import SoundDispatcher
from ..models.alert import ErrorResponse, IngestResponse

logger = structlog.get_logger(__name__)

router = APIRouter()


async def run_ingestion_guards(request: Request) -> RequestContext:
    """Dependency that runs the guard chain and yields the validated context."""
    chain: GuardChain = request.app.state.guard_chain
    settings = request.app.state.settings

    context = RequestContext.from_request(
        request,
        trust_proxy_headers=settings.security.trust_proxy_headers,
    )
    return await chain.run(context)


@router.post(
    "/test",
    response_model=IngestResponse,
    status_code=200,
    responses={
        400: {"model": ErrorResponse, "description": "Malformed payload"},
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        403: {"model": ErrorResponse, "description": "Client address not allowed"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    },
    summary="Receive an alert notification",
    description="""
    Receive a Grafana / Alertmanager webhook notification.

    **Guards (in order):**
    1. IP allow-list
    2. Per-client rate limit (fixed window)
    3. Bearer token authentication
    4. Payload validation (status must be firing or resolved)

    A firing notification also plays the configured sound in the background.
    """,
)
async def receive_alert(
    request: Request,
    context: RequestContext = Depends(run_ingestion_guards),
) -> IngestResponse:
    stats: GlobalStats = request.app.state.stats
    dispatcher: SoundDispatcher = request.app.state.dispatcher
    payload = context.payload
    if payload is None:
        raise ValidationError("Request body is required")

    await stats.record_accepted()

    logger.info(
        "Alert notification received",
        request_id=context.request_id,
        client=context.client_key,
        status=payload.status,
        receiver=payload.receiver,
        alerts_count=payload.alert_count,
    )
    logger.debug(
        "Alert payload",
        request_id=context.request_id,
        payload=payload.model_dump(),
    )

    metrics = getattr(request.app.state, "metrics", None)
    if metrics is not None:
        metrics.record_alert(payload.status)

    try:
        dispatcher.dispatch(payload)
    except Exception as e:
        logger.error(
            "Sound dispatch failed",
            request_id=context.request_id,
            error=str(e),
            error_type=type(e).__name__,
        )

    return IngestResponse(status="ok", message="received")
