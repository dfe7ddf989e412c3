"""Image rewrite engine: reference grammar and proxy-cache rewriting."""

from harbor_webhook.rewrite.reference import ImageReference
from harbor_webhook.rewrite.rewriter import (
    REASON_ALREADY_PROXIED,
    REASON_INVALID_REFERENCE,
    REASON_NO_MAPPING,
    REASON_REWRITTEN,
    ImageRewriter,
    RewritePlan,
)

__all__ = [
    "REASON_ALREADY_PROXIED",
    "REASON_INVALID_REFERENCE",
    "REASON_NO_MAPPING",
    "REASON_REWRITTEN",
    "ImageReference",
    "ImageRewriter",
    "RewritePlan",
]
