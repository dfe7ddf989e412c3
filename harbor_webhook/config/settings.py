"""Pydantic Settings for the webhook service.

All environment variables use the HARBOR_WEBHOOK_ prefix.
Example: HARBOR_WEBHOOK_HARBOR_ADDR=https://harbor.example.com,
HARBOR_WEBHOOK_RESYNC_INTERVAL_SECONDS=60
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class WebhookSettings(BaseSettings):
    """Webhook service configuration validated from environment variables."""

    # Service
    host: str = "0.0.0.0"
    port: int = Field(default=9443, ge=1, le=65535)
    log_level: str = "INFO"
    cert_dir: str | None = None  # Directory holding tls.crt / tls.key

    # Harbor API
    harbor_addr: str  # e.g. "https://harbor.example.com"
    harbor_user: str = ""
    harbor_pass: str = ""
    skip_verify: bool = False  # Skip TLS verification of Harbor
    timeout_seconds: float = Field(default=60.0, gt=0)
    page_size: int = Field(default=100, ge=1, le=100)

    # Projects cache
    resync_interval_seconds: float = Field(default=60.0, gt=0)

    # Image rewriting
    registry_policy_path: str | None = None

    # Shutdown
    graceful_shutdown_seconds: int = Field(default=30, ge=0)

    model_config = {"env_prefix": "HARBOR_WEBHOOK_"}

    @property
    def tls_files(self) -> tuple[str, str] | None:
        """(certfile, keyfile) inside ``cert_dir``, or None to serve plain HTTP."""
        if not self.cert_dir:
            return None
        base = Path(self.cert_dir)
        return str(base / "tls.crt"), str(base / "tls.key")
