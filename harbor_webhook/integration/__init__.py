"""Outbound integrations: the Harbor REST API."""

from harbor_webhook.integration.harbor_client import HarborClient

__all__ = ["HarborClient"]
