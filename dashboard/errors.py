from __future__ import annotations

import logging
from enum import Enum

import httpx
from pydantic import ValidationError

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUSES = frozenset({429})


class FailureKind(str, Enum):
    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    HTTP_STATUS = "http_status"
    VALIDATION = "validation"
    UNEXPECTED = "unexpected"


class ShapeError(ValueError):
    """Upstream answered 2xx but the payload is missing required fields."""


class UpstreamError(Exception):
    def __init__(
        self, kind: FailureKind, message: str, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code

    @property
    def rate_limited(self) -> bool:
        return self.kind is FailureKind.RATE_LIMITED

    def __repr__(self) -> str:
        return f"UpstreamError({self.kind.value}, {self.message!r}, status={self.status_code})"


def _error_body(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _from_status(exc: httpx.HTTPStatusError) -> UpstreamError:
    response = exc.response
    body = _error_body(response)

    # The proxy folds provider failures into a 500 but keeps the provider status
    upstream_status = body.get("upstream_status")
    status = upstream_status if isinstance(upstream_status, int) else response.status_code
    message = body.get("message") or body.get("error") or f"HTTP {status}"

    if status in RATE_LIMIT_STATUSES:
        return UpstreamError(FailureKind.RATE_LIMITED, message, status)
    if body.get("kind") == FailureKind.CONFIGURATION.value:
        return UpstreamError(FailureKind.CONFIGURATION, message, status)
    return UpstreamError(FailureKind.HTTP_STATUS, message, status)


def classify(exc: BaseException) -> UpstreamError:
    """Map a failed upstream call onto a single typed error."""
    if isinstance(exc, UpstreamError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return UpstreamError(FailureKind.TIMEOUT, f"Upstream timed out: {exc}")
    if isinstance(exc, httpx.HTTPStatusError):
        return _from_status(exc)
    if isinstance(exc, httpx.TransportError):
        return UpstreamError(FailureKind.TRANSPORT, f"Upstream unreachable: {exc}")
    if isinstance(exc, (ShapeError, ValidationError)):
        return UpstreamError(FailureKind.VALIDATION, f"Malformed upstream data: {exc}")

    logger.error(f"Unexpected error while fetching upstream data: {exc}", exc_info=exc)
    return UpstreamError(FailureKind.UNEXPECTED, str(exc) or exc.__class__.__name__)
