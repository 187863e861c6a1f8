"""
Logging Middleware

Request/response logging with structured logging and request tracing.

Sign-in routes carry bootstrap tokens, authorization codes and CSRF state in
the query string, so those parameters are only ever logged as fingerprints.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Mapping

import structlog
from fastapi import Request, Response

from exchange_gateway.auth.tokens import fingerprint

logger = structlog.get_logger()

SENSITIVE_QUERY_PARAMS = frozenset({"token", "code", "state", "id_token", "access_token"})


def redact_query_params(params: Mapping[str, str]) -> dict[str, str]:
    """
    Make query parameters safe to log.

    Args:
        params: Request query parameters

    Returns:
        Copy of the parameters with credentials replaced by fingerprints
    """
    return {
        key: fingerprint(value) if key in SENSITIVE_QUERY_PARAMS else value
        for key, value in params.items()
    }


async def logging_middleware(request: Request, call_next: Callable) -> Response:
    """
    Add structured logging and request tracing.

    Generates a trace ID for request correlation and binds the path and
    the redacted query.
    """
    trace_id = str(uuid.uuid4())

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        trace_id=trace_id,
        method=request.method,
        path=request.url.path,
        query=redact_query_params(request.query_params),
        client_host=request.client.host if request.client else None,
    )

    start_time = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception as exc:
        logger.error(
            "Request failed",
            error_type=type(exc).__name__,
            duration=time.perf_counter() - start_time,
            exc_info=True,
        )
        raise

    logger.info(
        "Request completed",
        status_code=response.status_code,
        redirected_to=_redirect_base(response),
        duration=time.perf_counter() - start_time,
    )

    response.headers["X-Trace-ID"] = trace_id
    response.headers["X-Request-ID"] = trace_id
    return response


def _redirect_base(response: Response) -> str | None:
    # Redirect targets carry exchange tokens in their query
    location = response.headers.get("location")
    if not location:
        return None
    return location.split("?", 1)[0]
