"""Configuration module: settings and registry normalization policy."""

from harbor_webhook.config.registry_policy import (
    DEFAULT_REGISTRY_POLICY,
    RegistryPolicy,
    load_registry_policy,
)
from harbor_webhook.config.settings import WebhookSettings

__all__ = [
    "DEFAULT_REGISTRY_POLICY",
    "RegistryPolicy",
    "WebhookSettings",
    "load_registry_policy",
]
