"""Unit tests for the background refresh scheduler."""

from __future__ import annotations

import asyncio

import pytest

from harbor_webhook.cache.projects_cache import ProjectsCache
from harbor_webhook.cache.scheduler import RefreshScheduler
from harbor_webhook.middleware.error_handler import RegistryAPIError


class RecordingCache:
    """Counts refresh calls; each call can block, fail, or succeed."""

    def __init__(self, delay: float = 0.0, fail: bool = False) -> None:
        self.delay = delay
        self.fail = fail
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self.failures: list[str] = []

    async def refresh(self):
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail:
                raise RegistryAPIError("Harbor returned 500", upstream_status=500)
        finally:
            self.active -= 1

    def record_failure(self, reason: str) -> None:
        self.failures.append(reason)


class TestConstruction:
    def test_deadline_is_capped_by_interval(self):
        scheduler = RefreshScheduler(RecordingCache(), interval_seconds=10, timeout_seconds=60)
        assert scheduler.deadline_seconds == 10

    def test_deadline_uses_timeout_when_smaller(self):
        scheduler = RefreshScheduler(RecordingCache(), interval_seconds=60, timeout_seconds=5)
        assert scheduler.deadline_seconds == 5

    @pytest.mark.parametrize("interval", [0, -1])
    def test_rejects_non_positive_interval(self, interval: float):
        with pytest.raises(ValueError):
            RefreshScheduler(RecordingCache(), interval_seconds=interval)

    def test_not_running_before_start(self):
        assert RefreshScheduler(RecordingCache()).is_running is False


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_success(self):
        cache = RecordingCache()
        assert await RefreshScheduler(cache).run_once() is True
        assert cache.calls == 1

    @pytest.mark.asyncio
    async def test_failure_is_absorbed(self):
        cache = RecordingCache(fail=True)
        assert await RefreshScheduler(cache).run_once() is False

    @pytest.mark.asyncio
    async def test_deadline_exceeded_is_absorbed(self):
        cache = RecordingCache(delay=5)
        scheduler = RefreshScheduler(cache, interval_seconds=0.05, timeout_seconds=60)

        assert await scheduler.run_once() is False
        # The abandoned refresh was cancelled
        assert cache.active == 0
        assert len(cache.failures) == 1
        assert "deadline" in cache.failures[0]

    @pytest.mark.asyncio
    async def test_deadline_exceeded_is_counted_by_projects_cache(self, fake_harbor, policy):
        fake_harbor.add_proxy("dockerhub-proxy", "https://hub.docker.com")
        fake_harbor.delay = 0.5
        cache = ProjectsCache(fake_harbor.client(), policy=policy)
        scheduler = RefreshScheduler(cache, interval_seconds=0.05, timeout_seconds=60)

        assert await scheduler.run_once() is False

        stats = cache.get_stats()
        assert stats["failure_count"] == 1
        assert "deadline" in stats["last_error"]
        assert stats["populated"] is False


class TestLoop:
    @pytest.mark.asyncio
    async def test_start_does_not_block_and_warms_up_immediately(self):
        cache = RecordingCache(delay=0.2)
        scheduler = RefreshScheduler(cache, interval_seconds=60)

        scheduler.start()
        assert scheduler.is_running is True
        await asyncio.sleep(0.01)
        assert cache.calls == 1
        assert cache.active == 1  # warm-up still in flight, start() already returned

        await scheduler.stop()
        assert scheduler.is_running is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        cache = RecordingCache()
        scheduler = RefreshScheduler(cache, interval_seconds=60)

        scheduler.start()
        scheduler.start()
        await asyncio.sleep(0.01)

        assert cache.calls == 1
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_the_loop(self):
        cache = RecordingCache(fail=True)
        scheduler = RefreshScheduler(cache, interval_seconds=0.02)

        scheduler.start()
        await asyncio.sleep(0.15)
        await scheduler.stop()

        assert cache.calls >= 3

    @pytest.mark.asyncio
    async def test_cycles_never_overlap(self):
        cache = RecordingCache(delay=0.03)
        scheduler = RefreshScheduler(cache, interval_seconds=0.05, timeout_seconds=1)

        scheduler.start()
        await asyncio.sleep(0.3)
        await scheduler.stop()

        assert cache.calls >= 2
        assert cache.max_active == 1

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        await RefreshScheduler(RecordingCache()).stop()
