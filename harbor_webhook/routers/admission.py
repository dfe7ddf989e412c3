"""Mutating admission endpoint.

- POST /mutate-v1-pod: AdmissionReview in, AdmissionReview out
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request

from harbor_webhook.middleware.error_handler import InvalidAdmissionReviewError
from harbor_webhook.services.pod_mutator import PodMutator

logger = logging.getLogger(__name__)

MUTATE_POD_PATH = "/mutate-v1-pod"


def create_admission_router(*, pod_mutator: PodMutator) -> APIRouter:
    """Factory that creates the admission router with injected dependencies."""
    admission_router = APIRouter(tags=["admission"])

    @admission_router.post(MUTATE_POD_PATH)
    async def mutate_pod(request: Request) -> dict[str, Any]:
        """Rewrite pod container images onto the Harbor proxy cache."""
        try:
            review = await request.json()
        except ValueError as exc:
            raise InvalidAdmissionReviewError("Request body is not valid JSON") from exc
        if not isinstance(review, dict):
            raise InvalidAdmissionReviewError("Request body must be a JSON object")

        return pod_mutator.handle_review(review)

    return admission_router
