"""Harbor v2.0 API client for listing projects and registry endpoints.

Fetches ``GET /api/v2.0/projects`` and ``GET /api/v2.0/registries`` with basic
authentication, following ``page`` / ``page_size`` pagination until the
listing is exhausted. Every call is bounded by the configured timeout.

Failures are never retried here: the projects cache retries on its next
scheduled refresh.

SECURITY: Never logs the Harbor password or the Authorization header.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from harbor_webhook.middleware.error_handler import MalformedPayloadError, RegistryAPIError

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v2.0"

# Guards against an API that keeps advertising a next page
_MAX_PAGES = 1000


class HarborClient:
    """HTTP client for the Harbor project and registry listings.

    Parameters
    ----------
    harbor_addr:
        Base address of Harbor (e.g. "https://harbor.example.com"). A bare
        host is treated as https.
    username, password:
        Basic-auth credentials. Requests are anonymous when username is empty.
    timeout_seconds:
        Overall timeout applied to each HTTP request.
    skip_verify:
        Disable TLS certificate verification of Harbor.
    page_size:
        Items requested per page (Harbor caps this at 100).
    transport:
        Optional httpx transport, used instead of the network.
    """

    def __init__(
        self,
        harbor_addr: str,
        username: str = "",
        password: str = "",
        timeout_seconds: float = 60.0,
        skip_verify: bool = False,
        page_size: int = 100,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        addr = harbor_addr.strip().rstrip("/")
        if "://" not in addr:
            addr = f"https://{addr}"
        self._base_url = addr
        self._auth = (username, password) if username else None
        self._timeout_seconds = timeout_seconds
        self._verify = not skip_verify
        self._page_size = page_size
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._base_url

    async def list_projects(self) -> list[dict[str, Any]]:
        """Return every project visible to the configured user."""
        return await self._list_all("/projects")

    async def list_registries(self) -> list[dict[str, Any]]:
        """Return every registry endpoint configured in Harbor."""
        return await self._list_all("/registries")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"{self._base_url}{API_PREFIX}",
            auth=self._auth,
            timeout=httpx.Timeout(self._timeout_seconds),
            verify=self._verify,
            headers={"Accept": "application/json"},
            transport=self._transport,
        )

    async def _list_all(self, path: str) -> list[dict[str, Any]]:
        """Fetch all pages of a listing endpoint.

        Raises
        ------
        RegistryAPIError
            On network failure, timeout, or a non-2xx response.
        MalformedPayloadError
            If a page is not a JSON array, or pagination never ends.
        """
        items: list[dict[str, Any]] = []

        async with self._client() as client:
            for page in range(1, _MAX_PAGES + 1):
                batch, has_next = await self._get_page(client, path, page)
                items.extend(batch)
                if not has_next:
                    logger.debug(
                        "Fetched %d items from %s in %d page(s)", len(items), path, page
                    )
                    return items

        raise MalformedPayloadError(
            f"Harbor listing {path} did not end after {_MAX_PAGES} pages"
        )

    async def _get_page(
        self, client: httpx.AsyncClient, path: str, page: int
    ) -> tuple[list[dict[str, Any]], bool]:
        """Fetch one page; returns its items and whether another page follows."""
        try:
            response = await client.get(
                path,
                params={"page": page, "page_size": self._page_size},
            )
        except httpx.TimeoutException as exc:
            logger.warning("Timed out fetching %s page %d from Harbor", path, page)
            raise RegistryAPIError(
                f"Timed out fetching {path} from Harbor", path=path
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "Harbor unreachable fetching %s page %d: %s", path, page, exc
            )
            raise RegistryAPIError(
                f"Harbor unreachable while fetching {path}", path=path
            ) from exc

        if not response.is_success:
            logger.warning(
                "Harbor returned status %d for %s page %d",
                response.status_code,
                path,
                page,
            )
            raise RegistryAPIError(
                f"Harbor returned status {response.status_code} for {path}",
                upstream_status=response.status_code,
                path=path,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedPayloadError(
                f"Harbor returned non-JSON body for {path}", path=path
            ) from exc

        if not isinstance(payload, list):
            raise MalformedPayloadError(
                f"Expected a JSON array from {path}, got {type(payload).__name__}",
                path=path,
            )

        if not payload:
            return payload, False
        if "link" in response.headers and "next" not in response.links:
            return payload, False
        return payload, len(payload) >= self._page_size
