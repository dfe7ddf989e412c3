"""Registry-mapping cache of Harbor proxy-cache projects.

Holds the latest ``CacheSnapshot`` of "upstream registry -> proxy-cache
project" and serves it without any I/O. ``refresh()`` builds a complete new
snapshot from the Harbor API and publishes it with a single reference
assignment, so concurrent readers observe either the old or the new snapshot
and never a partially built one. A failed refresh leaves the held snapshot
untouched.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any

from harbor_webhook.config.registry_policy import DEFAULT_REGISTRY_POLICY, RegistryPolicy
from harbor_webhook.integration.harbor_client import HarborClient
from harbor_webhook.middleware.error_handler import CacheNotPopulatedError
from harbor_webhook.models.projects import EMPTY_SNAPSHOT, CacheSnapshot, ProxyProject

logger = logging.getLogger(__name__)


class ProjectsCache:
    """Background-refreshed view of which upstream registries Harbor mirrors.

    Parameters
    ----------
    client:
        Harbor API client used by ``refresh()``.
    policy:
        Normalization policy applied to upstream registry URLs so they
        compare equal to the hosts of parsed image references.
    """

    def __init__(
        self,
        client: HarborClient,
        policy: RegistryPolicy = DEFAULT_REGISTRY_POLICY,
    ) -> None:
        self._client = client
        self._policy = policy
        self._snapshot: CacheSnapshot | None = None

        # Stats tracking
        self._refresh_count = 0
        self._failure_count = 0
        self._last_error: str | None = None
        self._last_duration_ms: float | None = None

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def list(self) -> CacheSnapshot:
        """Return the most recently published snapshot.

        Raises
        ------
        CacheNotPopulatedError
            If no refresh has succeeded yet. The error carries the empty
            snapshot on ``snapshot`` for callers that fail open.
        """
        snapshot = self._snapshot
        if snapshot is None:
            raise CacheNotPopulatedError(snapshot=EMPTY_SNAPSHOT)
        return snapshot

    @property
    def is_populated(self) -> bool:
        return self._snapshot is not None

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(self) -> CacheSnapshot:
        """Rebuild the snapshot from Harbor and publish it.

        Raises
        ------
        RegistryAPIError, MalformedPayloadError
            Propagated from the Harbor client; the held snapshot is unchanged.
        """
        start = time.monotonic()
        try:
            projects = await self._client.list_projects()
            registries = await self._client.list_registries()
            snapshot = CacheSnapshot.from_projects(
                self._proxy_projects(projects, registries),
                refreshed_at=datetime.now(timezone.utc),
            )
        except Exception as exc:
            self.record_failure(str(exc))
            logger.error(
                "Projects cache refresh failed, keeping previous snapshot: %s",
                exc,
                extra={"error_reason": str(exc)},
            )
            raise

        self._snapshot = snapshot
        self._refresh_count += 1
        self._last_error = None
        self._last_duration_ms = (time.monotonic() - start) * 1000
        logger.info(
            "Projects cache refreshed: %d proxy-cache project(s)",
            len(snapshot),
            extra={
                "project_count": len(snapshot),
                "duration_ms": round(self._last_duration_ms, 1),
            },
        )
        return snapshot

    def record_failure(self, reason: str) -> None:
        """Count a failed refresh attempt; the held snapshot is not touched."""
        self._failure_count += 1
        self._last_error = reason

    def _proxy_projects(
        self,
        projects: list[dict[str, Any]],
        registries: list[dict[str, Any]],
    ) -> list[ProxyProject]:
        """Join proxy-cache projects to their registry endpoints.

        Entries that cannot be interpreted are skipped and logged; they never
        fail the refresh as a whole.
        """
        endpoints: dict[int, str] = {}
        for registry in registries:
            try:
                registry_id = int(registry["id"])
                endpoints[registry_id] = self._policy.normalize_endpoint(str(registry["url"]))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed registry entry %r: %s", registry, exc)

        result: list[ProxyProject] = []
        for project in projects:
            try:
                name = str(project["name"]).strip("/")
                registry_id = int(project.get("registry_id") or 0)
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                logger.warning("Skipping malformed project entry %r: %s", project, exc)
                continue

            if not registry_id:
                continue  # regular project, not a proxy cache
            if not name:
                logger.warning("Skipping proxy-cache project with empty name")
                continue

            endpoint = endpoints.get(registry_id)
            if endpoint is None:
                logger.warning(
                    "Proxy-cache project '%s' references unknown registry id %d",
                    name,
                    registry_id,
                )
                continue

            result.append(ProxyProject(registry_endpoint=endpoint, project_path=name))

        return result

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_stats(self) -> dict:
        """Return cache statistics for the health and metrics endpoints."""
        snapshot = self._snapshot
        return {
            "populated": snapshot is not None,
            "project_count": len(snapshot) if snapshot is not None else 0,
            "registries": snapshot.endpoints() if snapshot is not None else [],
            "last_refreshed_at": (
                snapshot.refreshed_at.isoformat()
                if snapshot is not None and snapshot.refreshed_at is not None
                else None
            ),
            "refresh_count": self._refresh_count,
            "failure_count": self._failure_count,
            "last_error": self._last_error,
            "last_duration_ms": self._last_duration_ms,
        }
