"""Public models for the webhook."""

from harbor_webhook.models.admission import (
    AdmissionDecision,
    AdmissionRequest,
    AdmissionReview,
    GroupVersionKind,
)
from harbor_webhook.models.projects import EMPTY_SNAPSHOT, CacheSnapshot, ProxyProject
from harbor_webhook.models.responses import (
    ApiResponse,
    HealthStatus,
    MetricsSnapshot,
    ReadinessStatus,
)

__all__ = [
    "AdmissionDecision",
    "AdmissionRequest",
    "AdmissionReview",
    "ApiResponse",
    "CacheSnapshot",
    "EMPTY_SNAPSHOT",
    "GroupVersionKind",
    "HealthStatus",
    "MetricsSnapshot",
    "ProxyProject",
    "ReadinessStatus",
]
