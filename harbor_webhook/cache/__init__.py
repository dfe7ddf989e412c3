"""Registry-mapping cache package: snapshot holder and refresh scheduler."""

from harbor_webhook.cache.projects_cache import ProjectsCache
from harbor_webhook.cache.scheduler import RefreshScheduler

__all__ = ["ProjectsCache", "RefreshScheduler"]
