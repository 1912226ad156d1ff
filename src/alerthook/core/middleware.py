"""
HTTP middleware.

- RequestContextMiddleware: request id, access logging, metrics and the
  catch-all that turns unexpected errors into a plain 400.
- CORSGuardMiddleware: permissive CORS headers on every response and
  204 for any pre-flight request.
"""

import time
from typing import Optional

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from .metrics import MetricsCollector
from .pipeline import REQUEST_ID_HEADER, generate_request_id

logger = structlog.get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,HEAD,PUT,PATCH,POST,DELETE",
    "Access-Control-Allow-Headers": "*",
}


def apply_cors_headers(response: Response) -> Response:
    for name, value in CORS_HEADERS.items():
        response.headers[name] = value
    return response


class CORSGuardMiddleware(BaseHTTPMiddleware):
    """Answer pre-flight requests directly; decorate everything else."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS":
            return apply_cors_headers(Response(status_code=204))

        response = await call_next(request)
        return apply_cors_headers(response)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Outermost stage: every response leaves here with an X-Request-ID."""

    def __init__(self, app, metrics: Optional[MetricsCollector] = None) -> None:  # type: ignore[no-untyped-def]
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = generate_request_id()
        request.state.request_id = request_id
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Unhandled error while processing request",
                request_id=request_id,
                error=str(e),
                error_type=type(e).__name__,
                path=request.url.path,
                method=request.method,
                exc_info=True,
            )
            response = apply_cors_headers(JSONResponse(
                status_code=400,
                content={"error": "bad_request", "message": "Bad Request"},
            ))

        duration = time.perf_counter() - start
        response.headers[REQUEST_ID_HEADER] = request_id

        logger.info(
            "Request handled",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            request_id=request_id,
            client=request.client.host if request.client else None,
            duration_ms=round(duration * 1000, 2),
        )

        if self.metrics is not None:
            route = request.scope.get("route")
            endpoint = getattr(route, "path", "unmatched")
            self.metrics.record_request(request.method, endpoint, response.status_code, duration)

        return response
