"""
Common response DTOs shared across multiple endpoints.

ErrorResponse    — standard error shape from AppError.to_dict()
HealthResponse   — GET /health
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ErrorResponse(BaseModel):
    """Standard error JSON body produced by the AppError exception handler."""

    model_config = ConfigDict(populate_by_name=True)

    error: str
    code: str
    field: Optional[str] = None
    details: Optional[Any] = None


class StoreStatsResponse(BaseModel):
    """Aggregate store operation counters."""

    model_config = ConfigDict(populate_by_name=True)

    total: int
    failed: int
    slow: int
    failed_pct: float
    slow_pct: float


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    model_config = ConfigDict(populate_by_name=True)

    status: str
    checks: dict[str, str]
    store_state: str
    consecutive_failures: int
    stats: StoreStatsResponse
