"""Middleware package: error hierarchy and FastAPI exception handlers."""

from harbor_webhook.middleware.error_handler import (
    CacheNotPopulatedError,
    InvalidAdmissionReviewError,
    InvalidImageReferenceError,
    MalformedPayloadError,
    RegistryAPIError,
    WebhookError,
    register_error_handlers,
)

__all__ = [
    "CacheNotPopulatedError",
    "InvalidAdmissionReviewError",
    "InvalidImageReferenceError",
    "MalformedPayloadError",
    "RegistryAPIError",
    "WebhookError",
    "register_error_handlers",
]
