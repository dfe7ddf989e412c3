"""Image rewrite engine.

Classifies one image reference against a ``CacheSnapshot`` and decides whether
to route it through the Harbor proxy cache. Pure with respect to the
snapshot: no I/O, no shared mutable state, safe to call from any number of
concurrent admission requests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from harbor_webhook.config.registry_policy import DEFAULT_REGISTRY_POLICY, RegistryPolicy
from harbor_webhook.middleware.error_handler import InvalidImageReferenceError
from harbor_webhook.models.projects import CacheSnapshot
from harbor_webhook.rewrite.reference import ImageReference

logger = logging.getLogger(__name__)

REASON_REWRITTEN = "rewritten"
REASON_NO_MAPPING = "no-mapping"
REASON_ALREADY_PROXIED = "already-proxied"
REASON_INVALID_REFERENCE = "invalid-reference"


@dataclass(frozen=True)
class RewritePlan:
    """Outcome for a single image: unchanged, or replaced by ``image``."""

    original: str
    image: str
    reason: str

    @property
    def changed(self) -> bool:
        return self.reason == REASON_REWRITTEN

    @classmethod
    def no_change(cls, original: str, reason: str) -> RewritePlan:
        return cls(original=original, image=original, reason=reason)


class ImageRewriter:
    """Rewrites image references onto the Harbor proxy-cache project of their registry.

    Parameters
    ----------
    proxy_endpoint:
        Address of the Harbor instance (URL or bare host). Normalized to
        ``host[:port]`` and used as the registry host of rewritten images.
    policy:
        Default-registry resolution and host aliasing rules.
    """

    def __init__(
        self,
        proxy_endpoint: str,
        policy: RegistryPolicy = DEFAULT_REGISTRY_POLICY,
    ) -> None:
        self._policy = policy
        self._proxy_host = policy.normalize_endpoint(proxy_endpoint)

        # A bare single-label host (no "." or ":") is read by runtimes as a
        # Docker Hub namespace, not as a registry
        try:
            resolved = ImageReference.parse(f"{self._proxy_host}/x", policy).registry_host
        except InvalidImageReferenceError as exc:
            raise ValueError(f"Proxy endpoint {proxy_endpoint!r} is not a registry host") from exc
        if resolved != self._proxy_host:
            raise ValueError(
                f"Proxy endpoint {proxy_endpoint!r} would be pulled from {resolved!r}; "
                "use a host with a domain or an explicit port"
            )

    @property
    def proxy_host(self) -> str:
        return self._proxy_host

    @property
    def policy(self) -> RegistryPolicy:
        return self._policy

    def rewrite(self, image: str, snapshot: CacheSnapshot) -> RewritePlan:
        """Return the plan for *image* under *snapshot*. Never raises."""
        try:
            ref = ImageReference.parse(image, self._policy)
        except InvalidImageReferenceError as exc:
            logger.warning(
                "Leaving unparseable image reference unchanged: %s",
                exc.message,
                extra={"image": image},
            )
            return RewritePlan.no_change(image, REASON_INVALID_REFERENCE)

        if ref.registry_host == self._proxy_host:
            return RewritePlan.no_change(image, REASON_ALREADY_PROXIED)

        project = snapshot.lookup(ref.registry_host)
        if project is None:
            return RewritePlan.no_change(image, REASON_NO_MAPPING)

        proxied = ref.with_location(
            self._proxy_host, f"{project.project_path.strip('/')}/{ref.repository_path}"
        )
        rewritten = str(proxied)

        # The joined path must still be a pullable reference on the proxy host
        try:
            reparsed = ImageReference.parse(rewritten, self._policy)
        except InvalidImageReferenceError as exc:
            reason = exc.message
        else:
            reason = (
                None
                if reparsed.registry_host == self._proxy_host
                else f"resolves to registry {reparsed.registry_host}"
            )
        if reason is not None:
            logger.warning(
                "Rewritten reference for project '%s' is invalid, leaving image unchanged: %s",
                project.project_path,
                reason,
                extra={"image": image, "registry": ref.registry_host},
            )
            return RewritePlan.no_change(image, REASON_INVALID_REFERENCE)

        logger.debug(
            "Rewriting image %s -> %s",
            image,
            rewritten,
            extra={"image": image, "rewritten_image": rewritten, "registry": ref.registry_host},
        )
        return RewritePlan(original=image, image=rewritten, reason=REASON_REWRITTEN)
