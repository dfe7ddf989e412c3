"""Container image reference parsing and serialization.

Implements the distribution reference grammar used by container runtimes:

    reference  := name [ ":" tag ] [ "@" digest ]
    name       := [ domain "/" ] path-component [ "/" path-component ]*
    domain     := host [ ":" port ]

A reference without a domain is resolved through a ``RegistryPolicy`` the
same way the runtime would (``busybox`` -> ``docker.io/library/busybox``).
Tag and digest are carried verbatim; nothing here resolves one into the other.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace

from harbor_webhook.config.registry_policy import DEFAULT_REGISTRY_POLICY, RegistryPolicy
from harbor_webhook.middleware.error_handler import InvalidImageReferenceError

NAME_TOTAL_LENGTH_MAX = 255

_PATH_COMPONENT = re.compile(r"[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*")
_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_DOMAIN = re.compile(
    rf"(?:{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*|\[[a-fA-F0-9:]+\])(?::[0-9]+)?"
)
_TAG = re.compile(r"[\w][\w.-]{0,127}", re.ASCII)
_DIGEST = re.compile(r"[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}")
_ANCHORED_IDENTIFIER = re.compile(r"[a-f0-9]{64}")

# Hex lengths of the digest algorithms runtimes know how to verify
_DIGEST_HEX_LENGTHS = {"sha256": 64, "sha384": 96, "sha512": 128}


@dataclass(frozen=True)
class ImageReference:
    """Parsed, fully-qualified form of a container image string."""

    registry_host: str
    repository_path: str
    tag: str | None = None
    digest: str | None = None

    @classmethod
    def parse(
        cls, raw: str, policy: RegistryPolicy = DEFAULT_REGISTRY_POLICY
    ) -> ImageReference:
        """Parse *raw* and apply default-registry resolution from *policy*.

        Raises
        ------
        InvalidImageReferenceError
            If *raw* does not match the reference grammar.
        """
        if not isinstance(raw, str) or not raw or raw != raw.strip():
            raise InvalidImageReferenceError(f"Invalid image reference {raw!r}", image=raw)

        remainder = raw
        digest: str | None = None
        if "@" in remainder:
            remainder, digest = remainder.split("@", 1)
            _validate_digest(raw, digest)

        tag: str | None = None
        last_slash = remainder.rfind("/")
        colon = remainder.rfind(":")
        if colon > last_slash:
            remainder, tag = remainder[:colon], remainder[colon + 1 :]
            if not _TAG.fullmatch(tag):
                raise InvalidImageReferenceError(
                    f"Invalid tag in image reference {raw!r}", image=raw
                )

        if not remainder:
            raise InvalidImageReferenceError(f"Missing repository in {raw!r}", image=raw)
        if len(remainder) > NAME_TOTAL_LENGTH_MAX:
            raise InvalidImageReferenceError(
                f"Repository name longer than {NAME_TOTAL_LENGTH_MAX} characters", image=raw
            )

        host, path = _split_domain(remainder, policy)

        if not _DOMAIN.fullmatch(host):
            raise InvalidImageReferenceError(f"Invalid registry host in {raw!r}", image=raw)
        if not all(_PATH_COMPONENT.fullmatch(part) for part in path.split("/")):
            raise InvalidImageReferenceError(
                f"Invalid repository path in {raw!r}", image=raw
            )
        if _ANCHORED_IDENTIFIER.fullmatch(remainder):
            raise InvalidImageReferenceError(
                f"Repository name cannot be a 64-byte hexadecimal string: {raw!r}",
                image=raw,
            )

        return cls(registry_host=host, repository_path=path, tag=tag, digest=digest)

    @property
    def name(self) -> str:
        return f"{self.registry_host}/{self.repository_path}"

    def with_location(self, registry_host: str, repository_path: str) -> ImageReference:
        """Copy with a new host and path; tag and digest are kept as they are."""
        return replace(self, registry_host=registry_host, repository_path=repository_path)

    def __str__(self) -> str:
        ref = self.name
        if self.tag is not None:
            ref = f"{ref}:{self.tag}"
        if self.digest is not None:
            ref = f"{ref}@{self.digest}"
        return ref


def _split_domain(name: str, policy: RegistryPolicy) -> tuple[str, str]:
    """Separate the registry host from the repository path.

    The first component is a host only if it looks like one: it contains a
    ``.`` or ``:``, is ``localhost``, or has uppercase letters (which are
    illegal in paths).
    """
    first, sep, rest = name.partition("/")
    if sep and (
        any(c in first for c in ".:")
        or first == "localhost"
        or first.lower() != first
    ):
        host, path = policy.canonical_host(first), rest
    else:
        host, path = policy.default_registry, name

    if (
        host == policy.default_registry
        and policy.official_repository_prefix
        and "/" not in path
    ):
        path = f"{policy.official_repository_prefix}/{path}"
    return host, path


def _validate_digest(raw: str, digest: str) -> None:
    if not _DIGEST.fullmatch(digest):
        raise InvalidImageReferenceError(f"Invalid digest in image reference {raw!r}", image=raw)
    algorithm, _, encoded = digest.partition(":")
    expected = _DIGEST_HEX_LENGTHS.get(algorithm)
    if expected is not None and len(encoded) != expected:
        raise InvalidImageReferenceError(
            f"Digest {algorithm} must have {expected} hex characters in {raw!r}",
            image=raw,
        )
