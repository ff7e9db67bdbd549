"""Check GitHub for a newer ai-pod release."""

import re

import click
import httpx
import structlog

from . import __version__

logger = structlog.get_logger()

RELEASES_API_URL = "https://api.github.com/repos/farbenmeer/ai-pod/releases/latest"
RELEASES_PAGE_URL = "https://github.com/farbenmeer/ai-pod/releases/latest"
CHECK_TIMEOUT = 3.0  # seconds


def parse_version(version: str) -> tuple[int, int, int] | None:
    """Major, minor, patch of a semver tag; pre-release and build suffixes are dropped."""
    core = re.split(r"[-+]", version.strip().lstrip("v"), maxsplit=1)[0]
    parts = core.split(".", 2)
    if len(parts) != 3:
        return None
    try:
        return int(parts[0]), int(parts[1]), int(parts[2])
    except ValueError:
        return None


def is_newer(latest: str, current: str) -> bool:
    latest_v, current_v = parse_version(latest), parse_version(current)
    if latest_v is None or current_v is None:
        return False
    return latest_v > current_v


def fetch_latest_version() -> str:
    response = httpx.get(
        RELEASES_API_URL,
        timeout=CHECK_TIMEOUT,
        headers={"User-Agent": f"ai-pod/{__version__}"},
        follow_redirects=True,
    )
    response.raise_for_status()
    data = response.json()
    tag = data.get("tag_name") if isinstance(data, dict) else None
    if not isinstance(tag, str):
        raise ValueError("release has no tag_name")
    return tag.lstrip("v")


def check_for_update() -> str | None:
    """Print a notice when a newer release exists. Returns the newer version."""
    try:
        latest = fetch_latest_version()
    except (httpx.HTTPError, ValueError) as e:
        logger.debug("Update check failed", error=str(e))
        return None

    if not is_newer(latest, __version__):
        return None

    click.echo(
        click.style("Update available: ", fg="yellow", bold=True)
        + f"{__version__} -> "
        + click.style(latest, fg="green", bold=True)
        + f" ({RELEASES_PAGE_URL})"
    )
    return latest
