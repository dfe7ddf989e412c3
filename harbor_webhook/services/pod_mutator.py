"""Mutation orchestrator: turns a decoded pod into one admission decision.

Every container and init-container image is classified by the rewrite
engine against a single snapshot taken at the start of the request. Changed
images are collected into one RFC 6902 patch that touches only their
``image`` fields. The orchestrator never denies a pod: a cold cache or any
unexpected failure results in "allow, unmodified".
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from harbor_webhook.cache.projects_cache import ProjectsCache
from harbor_webhook.middleware.error_handler import (
    CacheNotPopulatedError,
    InvalidAdmissionReviewError,
    error_locations,
)
from harbor_webhook.models.admission import AdmissionDecision, AdmissionReview
from harbor_webhook.models.projects import CacheSnapshot
from harbor_webhook.rewrite.rewriter import ImageRewriter

logger = logging.getLogger(__name__)

# Pod spec fields whose images are proxied, in patch order
CONTAINER_FIELDS = ("initContainers", "containers")

_MUTATED_OPERATIONS = {"CREATE", "UPDATE"}


class PodMutator:
    """Applies the image rewriter to every container of a pod.

    Parameters
    ----------
    cache:
        Projects cache supplying the current snapshot.
    rewriter:
        Image rewrite engine.
    """

    def __init__(self, cache: ProjectsCache, rewriter: ImageRewriter) -> None:
        self._cache = cache
        self._rewriter = rewriter

        # Stats tracking
        self._reviewed = 0
        self._patched = 0
        self._images_rewritten = 0
        self._cold_cache = 0
        self._errors = 0

    def handle(self, pod: dict[str, Any] | None, request_id: str | None = None) -> AdmissionDecision:
        """Decide on *pod*. Never raises and never denies."""
        self._reviewed += 1
        try:
            snapshot = self._cache.list()
        except CacheNotPopulatedError:
            self._cold_cache += 1
            logger.warning(
                "Projects cache not yet populated, admitting pod unmodified",
                extra={"request_id": request_id},
            )
            return AdmissionDecision(
                allowed=True, message="projects cache not yet populated; images unchanged"
            )

        try:
            patch = self._build_patch(pod, snapshot, request_id)
        except Exception:
            self._errors += 1
            logger.exception(
                "Failed to build image patch, admitting pod unmodified",
                extra={"request_id": request_id},
            )
            return AdmissionDecision(allowed=True, message="image rewrite failed; images unchanged")

        if not patch:
            return AdmissionDecision(allowed=True)

        self._patched += 1
        self._images_rewritten += len(patch)
        return AdmissionDecision(
            allowed=True,
            patch=patch,
            message=f"rewrote {len(patch)} image(s) to {self._rewriter.proxy_host}",
        )

    def handle_review(self, review: dict[str, Any]) -> dict[str, Any]:
        """Answer a raw AdmissionReview document.

        Raises
        ------
        InvalidAdmissionReviewError
            If *review* is not an AdmissionReview with a request uid.
        """
        try:
            parsed = AdmissionReview.model_validate(review)
        except PydanticValidationError as exc:
            raise InvalidAdmissionReviewError(
                fields=error_locations(exc.errors())
            ) from exc

        request = parsed.request
        if request.kind.kind != "Pod" or request.operation not in _MUTATED_OPERATIONS:
            logger.debug(
                "Passing through %s %s unmodified",
                request.operation,
                request.kind.kind or "object",
                extra={"request_id": request.uid},
            )
            decision = AdmissionDecision(allowed=True)
        else:
            decision = self.handle(request.object, request_id=request.uid)

        return decision.to_review(request.uid, api_version=parsed.api_version)

    def _build_patch(
        self,
        pod: dict[str, Any] | None,
        snapshot: CacheSnapshot,
        request_id: str | None,
    ) -> list[dict[str, Any]]:
        spec = (pod or {}).get("spec") or {}
        metadata = (pod or {}).get("metadata") or {}
        patch: list[dict[str, Any]] = []

        for field_name in CONTAINER_FIELDS:
            for index, container in enumerate(spec.get(field_name) or []):
                image = container.get("image") if isinstance(container, dict) else None
                if not isinstance(image, str) or not image:
                    continue

                plan = self._rewriter.rewrite(image, snapshot)
                if not plan.changed:
                    continue

                patch.append(
                    {
                        "op": "replace",
                        "path": f"/spec/{field_name}/{index}/image",
                        "value": plan.image,
                    }
                )
                logger.info(
                    "Rewriting %s image %s -> %s",
                    container.get("name", f"{field_name}[{index}]"),
                    plan.original,
                    plan.image,
                    extra={
                        "request_id": request_id,
                        "image": plan.original,
                        "rewritten_image": plan.image,
                        "namespace": metadata.get("namespace"),
                        "pod": metadata.get("name") or metadata.get("generateName"),
                    },
                )

        return patch

    def get_stats(self) -> dict:
        """Return admission counters for the metrics endpoint."""
        return {
            "reviewed": self._reviewed,
            "patched": self._patched,
            "images_rewritten": self._images_rewritten,
            "cold_cache_admissions": self._cold_cache,
            "errors": self._errors,
        }
