"""
Admission guards for the ingestion route.

IP allow-listing, rate limiting, bearer token authentication and
payload validation. Each guard raises on rejection.
"""

import json
import secrets
from fnmatch import fnmatchcase
from typing import Any, Dict, Iterable, Optional, Tuple

import pydantic
import structlog

from ..models.alert import AlertPayload
from .counters import GlobalStats, RateWindowStore
from .exceptions import AuthenticationError, ForbiddenError, RateLimitError, ValidationError
from .pipeline import Guard, RequestContext

logger = structlog.get_logger(__name__)


def _mask_token(token: str) -> str:
    return token[:8] + "..." if len(token) >= 8 else "invalid"


class IPAllowListGuard(Guard):
    """
    Reject clients whose address matches no allow-list entry.

    Entries are exact addresses, ``*``, or shell-style patterns such as
    ``10.0.0.*``. An empty list lets everyone through.
    """

    name = "ip_allow_list"

    def __init__(self, allow_list: Iterable[str]) -> None:
        self.allow_list: Tuple[str, ...] = tuple(allow_list)

    def is_allowed(self, client_key: str) -> bool:
        if not self.allow_list:
            return True
        return any(
            entry == "*" or entry == client_key or fnmatchcase(client_key, entry)
            for entry in self.allow_list
        )

    async def evaluate(self, context: RequestContext) -> None:
        if not self.is_allowed(context.client_key):
            logger.warning(
                "Client not in allow-list",
                client=context.client_key,
                request_id=context.request_id,
            )
            raise ForbiddenError(client=context.client_key)


class RateLimitGuard(Guard):
    """
    Per-client fixed-window rate limiter.

    Counts every request that reaches it, including rejected ones.
    """

    name = "rate_limit"

    def __init__(
        self,
        store: RateWindowStore,
        stats: GlobalStats,
        limit: int,
        warn_ratio: float = 0.8,
    ) -> None:
        self.store = store
        self.stats = stats
        self.limit = limit
        self.warn_threshold = limit * warn_ratio

    async def evaluate(self, context: RequestContext) -> None:
        count = await self.store.increment(context.client_key)

        if count > self.limit:
            await self.stats.record_blocked()
            retry_after = self.store.seconds_until_reset()
            logger.warning(
                "Rate limit exceeded",
                client=context.client_key,
                count=count,
                limit=self.limit,
                retry_after=retry_after,
                request_id=context.request_id,
            )
            raise RateLimitError(
                message="Too many requests",
                retry_after=retry_after,
            )

        if count > self.warn_threshold:
            logger.warning(
                "Rate limit nearly exhausted",
                client=context.client_key,
                count=count,
                limit=self.limit,
                request_id=context.request_id,
            )
        else:
            logger.debug(
                "Rate limit check passed",
                client=context.client_key,
                count=count,
                limit=self.limit,
            )


class TokenAuthGuard(Guard):
    """Require ``Authorization: Bearer <token>`` when a token is configured."""

    name = "token_auth"

    def __init__(self, expected_token: str) -> None:
        self.expected_token = expected_token

    @staticmethod
    def extract_token(authorization: Optional[str]) -> str:
        if not authorization:
            return ""
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() != "bearer":
            return ""
        return credentials.strip()

    async def evaluate(self, context: RequestContext) -> None:
        if not self.expected_token:
            return

        token = self.extract_token(context.request.headers.get("authorization"))
        if not token:
            logger.warning(
                "Authentication failed: missing token",
                client=context.client_key,
                request_id=context.request_id,
            )
            raise AuthenticationError("Missing authentication token")

        if not secrets.compare_digest(token.encode(), self.expected_token.encode()):
            logger.warning(
                "Authentication failed: unknown token",
                token=_mask_token(token),
                client=context.client_key,
                request_id=context.request_id,
            )
            raise AuthenticationError("Invalid authentication token")

        logger.debug("Token authenticated successfully", request_id=context.request_id)


class PayloadGuard(Guard):
    """
    Parse and validate the alert body.

    Stores the validated AlertPayload on the context.
    """

    name = "payload"

    def __init__(self, max_body_bytes: int) -> None:
        self.max_body_bytes = max_body_bytes

    def _check_declared_length(self, context: RequestContext) -> None:
        declared = context.request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > self.max_body_bytes:
            raise ValidationError(
                "Request body too large",
                details={"max_body_bytes": self.max_body_bytes},
            )

    def parse(self, body: bytes) -> AlertPayload:
        """Validate raw body bytes into an AlertPayload."""
        if len(body) > self.max_body_bytes:
            raise ValidationError(
                "Request body too large",
                details={"max_body_bytes": self.max_body_bytes},
            )
        if not body.strip():
            raise ValidationError("Request body is required")

        try:
            data: Any = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValidationError("Malformed JSON body", details={"reason": str(e)}) from e

        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")

        if "status" not in data:
            raise ValidationError("Missing required field: status")

        try:
            return AlertPayload.model_validate(data)
        except pydantic.ValidationError as e:
            raise ValidationError(
                "Invalid alert payload",
                details={"fields": _error_fields(e)},
            ) from e

    async def read_body(self, context: RequestContext) -> bytes:
        """Read the body, stopping as soon as it passes the size limit."""
        chunks = []
        received = 0
        async for chunk in context.request.stream():
            received += len(chunk)
            if received > self.max_body_bytes:
                raise ValidationError(
                    "Request body too large",
                    details={"max_body_bytes": self.max_body_bytes},
                )
            chunks.append(chunk)
        return b"".join(chunks)

    async def evaluate(self, context: RequestContext) -> None:
        self._check_declared_length(context)
        body = await self.read_body(context)
        context.payload = self.parse(body)


def _error_fields(error: pydantic.ValidationError) -> Dict[str, str]:
    return {
        ".".join(str(part) for part in err["loc"]): err["msg"]
        for err in error.errors()
    }
