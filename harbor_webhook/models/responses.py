"""Response models for the operational endpoints.

Health, readiness and metrics answers are wrapped in the envelope
{ success: bool, data: T | None, error: str | None, meta: dict | None }.
The admission endpoint is not: the API server expects a bare
AdmissionReview document.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """JSON envelope for health, readiness and metrics responses."""

    success: bool
    data: T | None = None
    error: str | None = None
    meta: dict | None = None


class HealthStatus(BaseModel):
    status: str = "healthy"
    projects_cache: dict[str, Any] = Field(default_factory=dict)


class ReadinessStatus(BaseModel):
    """``ready`` follows the refresh loop; ``cache_populated`` is informational."""

    ready: bool
    cache_populated: bool


class MetricsSnapshot(BaseModel):
    projects_cache: dict[str, Any] = Field(default_factory=dict)
    admission: dict[str, Any] = Field(default_factory=dict)
