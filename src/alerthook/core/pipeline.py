"""
Guard pipeline for the ingestion route.

Guards run in a fixed order:
1. IP allow-list
2. Rate limiting
3. Token authentication
4. Payload validation

The first guard to raise stops the chain; later guards and the
ingestion handler never run. CORS is applied earlier, as HTTP
middleware, because it covers every route.
"""

import uuid
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

import structlog
from fastapi import Request

from ..models.alert import AlertPayload
from .exceptions import AlertHookException
from .metrics import MetricsCollector

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
_MAPPED_IPV4_PREFIX = "::ffff:"


def generate_request_id() -> str:
    """Short per-request identifier."""
    return uuid.uuid4().hex[:8]


def resolve_client_key(request: Request, trust_proxy_headers: bool = False) -> str:
    """
    Resolve the address used for allow-list and rate-limit decisions.

    With trust_proxy_headers the left-most X-Forwarded-For entry wins.
    IPv4-mapped IPv6 addresses are reduced to plain IPv4.
    """
    address = ""
    if trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for", "")
        address = forwarded.split(",")[0].strip()

    if not address and request.client is not None:
        address = request.client.host or ""

    if address.lower().startswith(_MAPPED_IPV4_PREFIX) and "." in address:
        address = address[len(_MAPPED_IPV4_PREFIX):]

    return address or "unknown"


@dataclass
class RequestContext:
    """Per-request data threaded through every guard."""
    request_id: str
    client_key: str
    request: Request
    payload: Optional[AlertPayload] = None

    @classmethod
    def from_request(cls, request: Request, trust_proxy_headers: bool = False) -> "RequestContext":
        request_id = getattr(request.state, "request_id", None) or generate_request_id()
        return cls(
            request_id=request_id,
            client_key=resolve_client_key(request, trust_proxy_headers),
            request=request,
        )


class Guard:
    """
    Base class for an admission check.

    ``evaluate`` returns to let the request through and raises an
    AlertHookException to reject it.
    """

    name = "guard"

    async def evaluate(self, context: RequestContext) -> None:
        raise NotImplementedError


@dataclass
class GuardChain:
    """Ordered guards evaluated with short-circuit on first rejection."""
    guards: List[Guard] = field(default_factory=list)
    metrics: Optional[MetricsCollector] = None

    @classmethod
    def of(cls, guards: Iterable[Guard], metrics: Optional[MetricsCollector] = None) -> "GuardChain":
        return cls(guards=list(guards), metrics=metrics)

    @property
    def names(self) -> Sequence[str]:
        return [guard.name for guard in self.guards]

    async def run(self, context: RequestContext) -> RequestContext:
        for guard in self.guards:
            try:
                await guard.evaluate(context)
            except AlertHookException as exc:
                logger.warning(
                    "Request rejected",
                    guard=guard.name,
                    request_id=context.request_id,
                    client=context.client_key,
                    status_code=exc.status_code,
                    error=exc.error_code,
                )
                if self.metrics is not None:
                    self.metrics.record_rejection(guard.name)
                raise
        return context
