"""Property tests for image reference rewriting.

Covers: unmapped references pass through byte-for-byte, rewriting is a
fixed point, and tag/digest survive a rewrite unchanged.
"""

from __future__ import annotations

from hypothesis import given, settings, strategies as st

from harbor_webhook.models.projects import CacheSnapshot, ProxyProject
from harbor_webhook.rewrite.reference import ImageReference
from harbor_webhook.rewrite.rewriter import REASON_NO_MAPPING, ImageRewriter

PROXY_HOST = "harbor.example.com"

_REWRITER = ImageRewriter(f"https://{PROXY_HOST}")
_SNAPSHOT = CacheSnapshot.from_projects(
    [
        ProxyProject(registry_endpoint="docker.io", project_path="dockerhub-proxy"),
        ProxyProject(registry_endpoint="ghcr.io", project_path="proxy/ghcr"),
        ProxyProject(registry_endpoint="registry.local:5000", project_path="local"),
    ]
)


# --- Strategies ---

mapped_hosts = st.sampled_from(
    ["docker.io", "index.docker.io", "registry-1.docker.io", "ghcr.io", "registry.local:5000"]
)
unmapped_hosts = st.sampled_from(["quay.io", "gcr.io", "registry.local:5001", "localhost"])
components = st.from_regex(r"[a-z0-9]{1,8}(?:[._-][a-z0-9]{1,8}){0,2}", fullmatch=True)
paths = st.lists(components, min_size=1, max_size=3).map("/".join)
tags = st.none() | st.from_regex(r"[A-Za-z0-9_][A-Za-z0-9_.-]{0,15}", fullmatch=True)
digests = st.none() | st.from_regex(r"[a-f0-9]{64}", fullmatch=True).map(lambda h: f"sha256:{h}")


def _image(host: str | None, path: str, tag: str | None, digest: str | None) -> str:
    image = f"{host}/{path}" if host else path
    if tag is not None:
        image = f"{image}:{tag}"
    if digest is not None:
        image = f"{image}@{digest}"
    return image


# --- Unmapped registries pass through ---

@settings(max_examples=100)
@given(host=unmapped_hosts, path=paths, tag=tags, digest=digests)
def test_unmapped_registry_is_returned_verbatim(
    host: str, path: str, tag: str | None, digest: str | None
) -> None:
    image = _image(host, path, tag, digest)

    plan = _REWRITER.rewrite(image, _SNAPSHOT)

    assert plan.changed is False
    assert plan.reason == REASON_NO_MAPPING
    assert plan.image == image


# --- Rewriting is a fixed point ---

@settings(max_examples=100)
@given(
    host=st.none() | mapped_hosts | unmapped_hosts,
    path=paths,
    tag=tags,
    digest=digests,
)
def test_rewrite_is_idempotent(
    host: str | None, path: str, tag: str | None, digest: str | None
) -> None:
    image = _image(host, path, tag, digest)

    once = _REWRITER.rewrite(image, _SNAPSHOT).image
    twice = _REWRITER.rewrite(once, _SNAPSHOT)

    assert twice.changed is False
    assert twice.image == once


# --- Tag and digest are preserved ---

@settings(max_examples=100)
@given(host=mapped_hosts, path=paths, tag=tags, digest=digests)
def test_rewrite_preserves_tag_and_digest(
    host: str, path: str, tag: str | None, digest: str | None
) -> None:
    image = _image(host, path, tag, digest)
    original = ImageReference.parse(image)

    plan = _REWRITER.rewrite(image, _SNAPSHOT)

    assert plan.changed is True
    rewritten = ImageReference.parse(plan.image)
    assert rewritten.registry_host == PROXY_HOST
    assert rewritten.tag == original.tag == tag
    assert rewritten.digest == original.digest == digest
    project = _SNAPSHOT.lookup(original.registry_host)
    assert rewritten.repository_path == f"{project.project_path}/{original.repository_path}"
