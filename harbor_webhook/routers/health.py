"""Health, readiness, and metrics endpoints.

- GET /health: service status + projects cache stats
- GET /readiness: 200 once the refresh scheduler is running; a cold cache
  does not make the webhook unready because admission fails open
- GET /metrics: cache and admission counters
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Response

from harbor_webhook.models.responses import (
    ApiResponse,
    HealthStatus,
    MetricsSnapshot,
    ReadinessStatus,
)

if TYPE_CHECKING:
    from harbor_webhook.cache.projects_cache import ProjectsCache
    from harbor_webhook.cache.scheduler import RefreshScheduler
    from harbor_webhook.services.pod_mutator import PodMutator


def create_health_router(
    *,
    projects_cache: ProjectsCache | Any = None,
    scheduler: RefreshScheduler | Any = None,
    pod_mutator: PodMutator | Any = None,
) -> APIRouter:
    """Factory that creates the health router with injected dependencies."""

    health_router = APIRouter(tags=["health"])

    def _cache_stats() -> dict:
        return projects_cache.get_stats() if projects_cache else {}

    @health_router.get("/health")
    async def health() -> dict:
        """Liveness: the process is up and serving."""
        return ApiResponse[HealthStatus](
            success=True,
            data=HealthStatus(projects_cache=_cache_stats()),
        ).model_dump()

    @health_router.get("/readiness")
    async def readiness(response: Response) -> dict:
        """Readiness check: 200 iff the refresh scheduler is running."""
        refreshing = bool(scheduler and scheduler.is_running)
        populated = bool(projects_cache and projects_cache.is_populated)

        if not refreshing:
            response.status_code = 503

        return ApiResponse[ReadinessStatus](
            success=refreshing,
            data=ReadinessStatus(ready=refreshing, cache_populated=populated),
            error=None if refreshing else "Projects cache refresh not running",
        ).model_dump()

    @health_router.get("/metrics")
    async def metrics() -> dict:
        """Operational metrics endpoint."""
        return ApiResponse[MetricsSnapshot](
            success=True,
            data=MetricsSnapshot(
                projects_cache=_cache_stats(),
                admission=pod_mutator.get_stats() if pod_mutator else {},
            ),
        ).model_dump()

    return health_router
