"""FastAPI application entry point with lifespan management.

Startup: load settings and registry policy, build the Harbor client, projects
cache, rewriter and pod mutator, start the cache refresh scheduler (which
warms the cache in the background without blocking startup).
Shutdown: stop the refresh scheduler.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from harbor_webhook.cache.projects_cache import ProjectsCache
from harbor_webhook.cache.scheduler import RefreshScheduler
from harbor_webhook.config.registry_policy import load_registry_policy
from harbor_webhook.config.settings import WebhookSettings
from harbor_webhook.integration.harbor_client import HarborClient
from harbor_webhook.logging_config import configure_logging
from harbor_webhook.middleware.error_handler import register_error_handlers
from harbor_webhook.rewrite.rewriter import ImageRewriter
from harbor_webhook.routers.admission import create_admission_router
from harbor_webhook.routers.health import create_health_router
from harbor_webhook.services.pod_mutator import PodMutator

logger = logging.getLogger(__name__)


def build_components(settings: WebhookSettings) -> dict:
    """Construct the core components from settings (no I/O)."""
    policy = load_registry_policy(settings.registry_policy_path)

    client = HarborClient(
        harbor_addr=settings.harbor_addr,
        username=settings.harbor_user,
        password=settings.harbor_pass,
        timeout_seconds=settings.timeout_seconds,
        skip_verify=settings.skip_verify,
        page_size=settings.page_size,
    )
    projects_cache = ProjectsCache(client, policy=policy)
    scheduler = RefreshScheduler(
        projects_cache,
        interval_seconds=settings.resync_interval_seconds,
        timeout_seconds=settings.timeout_seconds,
    )
    rewriter = ImageRewriter(settings.harbor_addr, policy=policy)
    pod_mutator = PodMutator(projects_cache, rewriter)

    return {
        "policy": policy,
        "harbor_client": client,
        "projects_cache": projects_cache,
        "scheduler": scheduler,
        "rewriter": rewriter,
        "pod_mutator": pod_mutator,
    }


def create_app(settings: WebhookSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Loads ``WebhookSettings`` eagerly so that a missing
    ``HARBOR_WEBHOOK_HARBOR_ADDR`` environment variable causes an immediate
    startup failure.
    """
    settings = settings or WebhookSettings()  # type: ignore[call-arg]
    components = build_components(settings)
    scheduler: RefreshScheduler = components["scheduler"]

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan: startup and shutdown logic."""
        configure_logging(settings.log_level)
        logger.info(
            "Starting harbor-container-webhook, proxying through %s",
            components["rewriter"].proxy_host,
        )

        # Warm the cache in the background; requests before the first
        # successful refresh are admitted unmodified
        scheduler.start()

        logger.info("harbor-container-webhook started")

        yield

        # --- Shutdown ---
        logger.info("Shutting down harbor-container-webhook…")
        await scheduler.stop()
        logger.info("harbor-container-webhook shut down")

    app = FastAPI(
        title="Harbor Container Webhook",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.components = components

    register_error_handlers(app)

    app.include_router(
        create_health_router(
            projects_cache=components["projects_cache"],
            scheduler=scheduler,
            pod_mutator=components["pod_mutator"],
        )
    )
    app.include_router(create_admission_router(pod_mutator=components["pod_mutator"]))

    return app
