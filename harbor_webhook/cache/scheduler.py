"""Recurring background refresh of the projects cache.

One asyncio task owns the refresh loop. Each cycle awaits ``refresh()`` to
completion before sleeping, so cycles never overlap. A cycle is bounded by a
deadline of ``min(timeout, interval)`` so a hung Harbor call cannot starve
later cycles. The first cycle starts immediately (the startup warm-up) and
``start()`` returns without waiting for it.
"""

from __future__ import annotations

import asyncio
import logging

from harbor_webhook.cache.projects_cache import ProjectsCache

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Drives ``ProjectsCache.refresh()`` on a fixed interval.

    Parameters
    ----------
    cache:
        The cache to refresh.
    interval_seconds:
        Delay between the end of one cycle and the start of the next.
    timeout_seconds:
        Upper bound on one cycle; capped at ``interval_seconds``.
    """

    def __init__(
        self,
        cache: ProjectsCache,
        interval_seconds: float = 60.0,
        timeout_seconds: float = 60.0,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._cache = cache
        self._interval_seconds = interval_seconds
        self._deadline_seconds = min(timeout_seconds, interval_seconds)
        self._task: asyncio.Task[None] | None = None

    @property
    def deadline_seconds(self) -> float:
        return self._deadline_seconds

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the refresh loop; the first refresh runs right away in the background."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop(), name="projects-cache-refresh")
        logger.info(
            "Projects cache refresh scheduled every %.1fs (deadline %.1fs)",
            self._interval_seconds,
            self._deadline_seconds,
        )

    async def stop(self) -> None:
        """Cancel the refresh loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Projects cache refresh stopped")

    async def run_once(self) -> bool:
        """Run one refresh cycle under the deadline. Returns True on success."""
        try:
            await asyncio.wait_for(self._cache.refresh(), timeout=self._deadline_seconds)
        except asyncio.TimeoutError:
            reason = f"refresh exceeded {self._deadline_seconds:.1f}s deadline"
            # The cancelled refresh never reaches its own failure accounting
            self._cache.record_failure(reason)
            logger.error(
                "Projects cache %s, retrying next cycle",
                reason,
                extra={"error_reason": reason},
            )
            return False
        except Exception as exc:  # noqa: BLE001
            # Already logged by the cache; the next cycle retries
            logger.debug("Refresh cycle failed: %s", exc)
            return False
        return True

    async def _loop(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self._interval_seconds)
