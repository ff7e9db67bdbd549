"""Workspace image naming and builds."""

import hashlib
import re
from pathlib import Path

import structlog

from .runtime import RuntimeClient

logger = structlog.get_logger()

DOCKERFILE_NAME = "ai-pod.Dockerfile"

DEFAULT_DOCKERFILE = """\
FROM node:22-bookworm

RUN apt-get update \\
    && apt-get install -y --no-install-recommends git curl ca-certificates ripgrep \\
    && rm -rf /var/lib/apt/lists/*

RUN npm install -g @anthropic-ai/claude-code

RUN useradd --create-home --shell /bin/bash claude
USER claude
WORKDIR /app

# Add project tooling below, e.g.
# RUN pip install --user poetry

CMD ["claude", "--dangerously-skip-permissions"]
"""

_LABEL_INVALID = re.compile(r"[^a-z0-9._-]")


def image_name(workspace: Path) -> str:
    """Stable, readable image name: `<dirname>-<6 hex>`, e.g. `myproject-12aef3`."""
    label = _LABEL_INVALID.sub("-", (workspace.name or "project").lower()).strip("-")
    label = label or "project"
    short_hash = hashlib.sha256(str(workspace).encode("utf-8")).hexdigest()[:6]
    return f"{label}-{short_hash}"


def needs_build(runtime: RuntimeClient, image: str, force: bool) -> bool:
    if force:
        return True
    return not runtime.image_exists(image)


def ensure_image(
    runtime: RuntimeClient,
    dockerfile: Path,
    image: str,
    context: Path,
    force: bool = False,
) -> bool:
    """Build the image when forced or missing. Returns True if it built."""
    if not needs_build(runtime, image, force):
        logger.debug("Image up to date", image=image)
        return False

    logger.info("Building image", image=image, dockerfile=str(dockerfile))
    runtime.build_image(image, dockerfile, context)
    return True


def init_project(workspace: Path) -> tuple[Path, bool]:
    """Write the default Dockerfile into the workspace unless one exists.

    Returns:
        Tuple of (dockerfile path, created)
    """
    dockerfile = workspace / DOCKERFILE_NAME
    if dockerfile.exists():
        return dockerfile, False
    dockerfile.write_text(DEFAULT_DOCKERFILE, encoding="utf-8")
    return dockerfile, True
