"""
Health Check Endpoints

Store health and liveness endpoints for monitoring and load balancing.
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Request, Response, status

from exchange_gateway.models.health import HealthCheckDetail, HealthResponse, LivenessResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse, summary="Store health check")
async def health_check(request: Request, response: Response) -> HealthResponse:
    """
    Check the token and session stores.

    Returns 503 when either store is unreachable.
    """
    checks: dict[str, HealthCheckDetail] = {}

    for name in ("token_store", "session_store"):
        store = getattr(request.app.state, name, None)
        if store is None:
            checks[name] = HealthCheckDetail(status="unhealthy", details="Not configured")
            continue

        result = await store.health_check()
        checks[name] = HealthCheckDetail(
            status=result["status"],
            details=result.get("error", "Connected"),
        )

    overall = "healthy" if all(c.status == "healthy" for c in checks.values()) else "unhealthy"
    if overall != "healthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status=overall,
        version=request.app.version,
        timestamp=datetime.now(UTC).isoformat(),
        checks=checks,
    )


@router.get("/live", response_model=LivenessResponse, summary="Liveness probe")
async def liveness_check() -> LivenessResponse:
    return LivenessResponse(status="alive")
