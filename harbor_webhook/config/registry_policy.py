"""Registry normalization policy model and YAML loader.

The policy decides how an image reference without an explicit registry is
resolved, and which registry hostnames are aliases of one another. It must
match the container runtime of the target cluster, so it is injected rather
than hardcoded: defaults mirror containerd/Docker, overrides come from YAML.
"""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urlsplit

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"https": "443", "http": "80"}


class RegistryPolicy(BaseModel):
    """Default-registry resolution and host aliasing rules."""

    default_registry: str = Field(default="docker.io", min_length=1)
    official_repository_prefix: str = "library"
    registry_aliases: dict[str, str] = Field(
        default_factory=lambda: {
            "index.docker.io": "docker.io",
            "registry-1.docker.io": "docker.io",
            "registry.hub.docker.com": "docker.io",
            "hub.docker.com": "docker.io",
        }
    )

    @field_validator("default_registry")
    @classmethod
    def _lowercase_registry(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("official_repository_prefix")
    @classmethod
    def _strip_prefix(cls, value: str) -> str:
        return value.strip().strip("/")

    @field_validator("registry_aliases")
    @classmethod
    def _lowercase_aliases(cls, value: dict[str, str]) -> dict[str, str]:
        return {k.strip().lower(): v.strip().lower() for k, v in value.items()}

    def canonical_host(self, host: str) -> str:
        """Lowercase *host* and resolve it through the alias table."""
        host = host.lower()
        return self.registry_aliases.get(host, host)

    def normalize_endpoint(self, value: str) -> str:
        """Reduce a registry URL or bare host to its canonical ``host[:port]``.

        ``https://Registry-1.Docker.io/v2/`` and ``docker.io`` both become
        ``docker.io``. Ports equal to the scheme default are dropped.

        Raises
        ------
        ValueError
            If *value* does not contain a hostname.
        """
        raw = value.strip()
        if "://" not in raw:
            raw = f"//{raw}"
        parts = urlsplit(raw)
        host = (parts.hostname or "").lower()
        if not host:
            raise ValueError(f"No registry host in {value!r}")

        port = parts.port
        if port is not None and _DEFAULT_PORTS.get(parts.scheme) != str(port):
            host = f"{host}:{port}"
        return self.canonical_host(host)


DEFAULT_REGISTRY_POLICY = RegistryPolicy()


def load_registry_policy(yaml_path: str | None) -> RegistryPolicy:
    """Parse a registry policy YAML file into a ``RegistryPolicy``.

    Args:
        yaml_path: Path to the YAML configuration file, or None.

    Returns:
        The parsed policy. If the path is unset, the file is missing, or its
        content is invalid, the built-in default policy is returned.
    """
    if not yaml_path:
        return DEFAULT_REGISTRY_POLICY

    path = Path(yaml_path)
    if not path.exists():
        logger.warning("Registry policy file not found at %s, using built-in defaults", yaml_path)
        return DEFAULT_REGISTRY_POLICY

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        logger.error("Failed to parse registry policy YAML at %s: %s", yaml_path, exc)
        return DEFAULT_REGISTRY_POLICY

    if raw is None:
        return DEFAULT_REGISTRY_POLICY
    if not isinstance(raw, dict):
        logger.warning("Registry policy YAML at %s is not a mapping, using built-in defaults", yaml_path)
        return DEFAULT_REGISTRY_POLICY

    try:
        policy = RegistryPolicy.model_validate(raw)
    except Exception as exc:
        logger.error("Invalid registry policy in %s: %s, using built-in defaults", yaml_path, exc)
        return DEFAULT_REGISTRY_POLICY

    logger.info(
        "Loaded registry policy: default_registry=%s aliases=%d",
        policy.default_registry,
        len(policy.registry_aliases),
    )
    return policy
