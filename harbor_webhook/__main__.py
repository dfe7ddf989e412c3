"""Run the webhook server: ``python -m harbor_webhook``.

Serves HTTPS when ``HARBOR_WEBHOOK_CERT_DIR`` points at a directory holding
``tls.crt`` and ``tls.key`` (the layout cert-manager and kubebuilder use);
plain HTTP otherwise.
"""

from __future__ import annotations

import uvicorn

from harbor_webhook.config.settings import WebhookSettings
from harbor_webhook.main import create_app


def main() -> None:
    settings = WebhookSettings()  # type: ignore[call-arg]
    tls_files = settings.tls_files
    certfile, keyfile = tls_files if tls_files else (None, None)

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        ssl_certfile=certfile,
        ssl_keyfile=keyfile,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=settings.graceful_shutdown_seconds,
    )


if __name__ == "__main__":
    main()
