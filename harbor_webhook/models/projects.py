"""Registry-mapping data models: proxy-cache projects and cache snapshots."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProxyProject:
    """One upstream registry mirrored by a Harbor proxy-cache project."""

    registry_endpoint: str  # normalized host[:port], e.g. "docker.io"
    project_path: str  # path under the proxy host, e.g. "dockerhub-proxy"


@dataclass(frozen=True)
class CacheSnapshot:
    """Immutable point-in-time set of proxy-cache projects keyed by upstream endpoint."""

    projects: Mapping[str, ProxyProject] = field(
        default_factory=lambda: MappingProxyType({})
    )
    refreshed_at: datetime | None = None

    @classmethod
    def from_projects(
        cls,
        projects: Iterable[ProxyProject],
        refreshed_at: datetime | None = None,
    ) -> CacheSnapshot:
        """Build a snapshot, keeping one project per upstream endpoint.

        Projects are considered in ``project_path`` order so that the winner of
        an endpoint collision does not depend on API ordering.
        """
        by_endpoint: dict[str, ProxyProject] = {}
        for project in sorted(projects, key=lambda p: (p.project_path, p.registry_endpoint)):
            existing = by_endpoint.get(project.registry_endpoint)
            if existing is not None:
                logger.warning(
                    "Projects '%s' and '%s' both mirror %s; keeping '%s'",
                    existing.project_path,
                    project.project_path,
                    project.registry_endpoint,
                    existing.project_path,
                )
                continue
            by_endpoint[project.registry_endpoint] = project
        return cls(projects=MappingProxyType(by_endpoint), refreshed_at=refreshed_at)

    def lookup(self, registry_endpoint: str) -> ProxyProject | None:
        return self.projects.get(registry_endpoint)

    def endpoints(self) -> list[str]:
        return sorted(self.projects)

    def __contains__(self, registry_endpoint: object) -> bool:
        return registry_endpoint in self.projects

    def __len__(self) -> int:
        return len(self.projects)

    def __iter__(self) -> Iterator[ProxyProject]:
        return iter(self.projects.values())


EMPTY_SNAPSHOT = CacheSnapshot()
