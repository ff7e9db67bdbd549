"""Deterministic container and volume names for a workspace."""

import hashlib
from dataclasses import dataclass
from pathlib import Path

DIGEST_LENGTH = 12  # hex chars, 48 bits
VOLUME_SUFFIX = "-home"
DEFAULT_PREFIX = "claude"


@dataclass(frozen=True)
class WorkspaceIdentity:
    """Names of the container and home volume that belong to one workspace."""

    container_name: str
    volume_name: str

    @property
    def seed_container_name(self) -> str:
        """Disposable container used as a copy target while seeding."""
        return f"{self.container_name}-seed"


def workspace_digest(workspace: str | Path) -> str:
    """Truncated SHA-256 of the workspace path."""
    return hashlib.sha256(str(workspace).encode("utf-8")).hexdigest()[:DIGEST_LENGTH]


def derive_identity(workspace: str | Path, prefix: str = DEFAULT_PREFIX) -> WorkspaceIdentity:
    """Derive the identity for a canonical absolute workspace path.

    The volume name is always the container name plus VOLUME_SUFFIX, so
    either can be recovered from the other without a lookup table.
    """
    container_name = f"{prefix}-{workspace_digest(workspace)}"
    return WorkspaceIdentity(
        container_name=container_name,
        volume_name=volume_name_for(container_name),
    )


def volume_name_for(container_name: str) -> str:
    return f"{container_name}{VOLUME_SUFFIX}"


def container_name_for_volume(volume_name: str) -> str:
    if not volume_name.endswith(VOLUME_SUFFIX):
        raise ValueError(f"Not a home volume name: {volume_name}")
    return volume_name[: -len(VOLUME_SUFFIX)]
