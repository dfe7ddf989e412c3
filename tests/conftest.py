"""Shared test fixtures for the webhook test suite."""

from __future__ import annotations

import asyncio
import os
from typing import Any

import httpx
import pytest

from harbor_webhook.cache.projects_cache import ProjectsCache
from harbor_webhook.config.registry_policy import RegistryPolicy
from harbor_webhook.config.settings import WebhookSettings
from harbor_webhook.integration.harbor_client import HarborClient
from harbor_webhook.middleware.error_handler import CacheNotPopulatedError
from harbor_webhook.models.projects import CacheSnapshot, ProxyProject
from harbor_webhook.rewrite.rewriter import ImageRewriter
from harbor_webhook.services.pod_mutator import PodMutator

HARBOR_ADDR = "https://harbor.example.com"
PROXY_HOST = "harbor.example.com"
DIGEST = "sha256:" + "deadbeef" * 8


# ---------------------------------------------------------------------------
# Ensure required env vars are set for WebhookSettings in tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _set_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set minimal env vars so WebhookSettings can be instantiated in tests."""
    if "HARBOR_WEBHOOK_HARBOR_ADDR" not in os.environ:
        monkeypatch.setenv("HARBOR_WEBHOOK_HARBOR_ADDR", HARBOR_ADDR)


@pytest.fixture
def settings() -> WebhookSettings:
    """Test settings with safe defaults."""
    return WebhookSettings(
        harbor_addr=HARBOR_ADDR,
        harbor_user="robot$webhook",
        harbor_pass="hunter2",
        resync_interval_seconds=60,
        timeout_seconds=5,
    )


# ---------------------------------------------------------------------------
# Fake Harbor API
# ---------------------------------------------------------------------------


class FakeHarbor:
    """In-memory Harbor v2.0 project/registry listing served via httpx.MockTransport.

    ``status`` forces every response to that status code; ``delay`` sleeps
    before answering each page so refreshes can be interleaved with reads.
    """

    def __init__(self) -> None:
        self.projects: list[dict[str, Any]] = []
        self.registries: list[dict[str, Any]] = []
        self.status = 200
        self.delay = 0.0
        self.requests: list[httpx.Request] = []

    def add_proxy(self, name: str, registry_url: str, registry_id: int | None = None) -> None:
        rid = registry_id or len(self.registries) + 1
        if not any(r["id"] == rid for r in self.registries):
            self.registries.append({"id": rid, "name": f"reg-{rid}", "url": registry_url})
        self.projects.append({"project_id": len(self.projects) + 1, "name": name, "registry_id": rid})

    def add_project(self, name: str) -> None:
        self.projects.append({"project_id": len(self.projects) + 1, "name": name})

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.status != 200:
            return httpx.Response(self.status, json={"errors": [{"code": "ERR"}]})

        items = self.projects if request.url.path.endswith("/projects") else self.registries
        page = int(request.url.params.get("page", "1"))
        size = int(request.url.params.get("page_size", "10"))
        chunk = items[(page - 1) * size : page * size]
        return httpx.Response(200, json=chunk)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, page_size: int = 100) -> HarborClient:
        return HarborClient(
            harbor_addr=HARBOR_ADDR,
            username="robot$webhook",
            password="hunter2",
            timeout_seconds=5,
            page_size=page_size,
            transport=self.transport(),
        )


@pytest.fixture
def fake_harbor() -> FakeHarbor:
    return FakeHarbor()


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def policy() -> RegistryPolicy:
    return RegistryPolicy()


@pytest.fixture
def rewriter(policy: RegistryPolicy) -> ImageRewriter:
    return ImageRewriter(HARBOR_ADDR, policy=policy)


@pytest.fixture
def snapshot() -> CacheSnapshot:
    """docker.io and ghcr.io are proxied; quay.io is not."""
    return CacheSnapshot.from_projects(
        [
            ProxyProject(registry_endpoint="docker.io", project_path="proxy/dockerhub"),
            ProxyProject(registry_endpoint="ghcr.io", project_path="ghcr-proxy"),
        ]
    )


class StaticCache:
    """Stands in for ProjectsCache with a fixed snapshot (or a cold cache)."""

    def __init__(self, snapshot: CacheSnapshot | None) -> None:
        self._snapshot = snapshot

    def list(self) -> CacheSnapshot:
        if self._snapshot is None:
            raise CacheNotPopulatedError(snapshot=CacheSnapshot())
        return self._snapshot


@pytest.fixture
def pod_mutator(snapshot: CacheSnapshot, rewriter: ImageRewriter) -> PodMutator:
    return PodMutator(StaticCache(snapshot), rewriter)  # type: ignore[arg-type]


@pytest.fixture
def projects_cache(fake_harbor: FakeHarbor, policy: RegistryPolicy) -> ProjectsCache:
    return ProjectsCache(fake_harbor.client(), policy=policy)


def _make_pod(
    containers: list[str],
    init_containers: list[str] | None = None,
    name: str = "demo",
) -> dict[str, Any]:
    """Build a decoded core/v1 Pod with the given container images."""
    spec: dict[str, Any] = {
        "containers": [
            {"name": f"c{i}", "image": image} for i, image in enumerate(containers)
        ]
    }
    if init_containers is not None:
        spec["initContainers"] = [
            {"name": f"init{i}", "image": image} for i, image in enumerate(init_containers)
        ]
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": name, "namespace": "default"},
        "spec": spec,
    }


@pytest.fixture
def make_pod():
    """Factory fixture for decoded pods."""
    return _make_pod


@pytest.fixture
def cold_pod_mutator(rewriter: ImageRewriter) -> PodMutator:
    return PodMutator(StaticCache(None), rewriter)  # type: ignore[arg-type]
