"""
Health check endpoint.

GET /health — reports the store session state and operation counters.
Rules:
- store reachable               → "healthy" (200)
- degraded handle in use        → "degraded" (200), writes are not persisted
- store unreachable             → "unhealthy" (503)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from dependencies import get_store
from infrastructure.store.session import StoreSession
from schemas.dto.responses.common import HealthResponse, StoreStatsResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(store: StoreSession = Depends(get_store)) -> JSONResponse:
    checks: dict[str, str] = {}

    if store.is_degraded:
        checks["mongodb"] = "degraded"
        overall = "degraded"
    elif await store.health_check():
        checks["mongodb"] = "ok"
        overall = "healthy"
    else:
        checks["mongodb"] = "error"
        overall = "unhealthy"

    body = HealthResponse(
        status=overall,
        checks=checks,
        store_state=store.state.value,
        consecutive_failures=store.consecutive_failures,
        stats=StoreStatsResponse(**store.stats.snapshot()),
    )
    status_code = 503 if overall == "unhealthy" else 200
    return JSONResponse(status_code=status_code, content=body.model_dump())
