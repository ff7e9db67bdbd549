"""Desktop notification dispatch."""

import shutil
import subprocess
from enum import Enum

import structlog

from .errors import NotificationDispatchFailed, SoftResult

logger = structlog.get_logger()

DISPATCH_TIMEOUT = 10  # seconds


class NotifyBackend(str, Enum):
    OSASCRIPT = "osascript"
    NOTIFY_SEND = "notify-send"
    NONE = "none"


def detect_backend() -> NotifyBackend:
    """Pick the first available notifier: macOS first, then freedesktop."""
    if shutil.which("osascript"):
        return NotifyBackend.OSASCRIPT
    if shutil.which("notify-send"):
        return NotifyBackend.NOTIFY_SEND
    return NotifyBackend.NONE


def applescript_quote(value: str) -> str:
    """Quote a string as an AppleScript string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_command(backend: NotifyBackend, title: str, message: str) -> list[str]:
    if backend is NotifyBackend.OSASCRIPT:
        script = (
            f"display notification {applescript_quote(message)} "
            f"with title {applescript_quote(title)}"
        )
        return ["osascript", "-e", script]
    if backend is NotifyBackend.NOTIFY_SEND:
        # "--" keeps a title starting with "-" from being read as an option
        return ["notify-send", "--", title, message]
    raise NotificationDispatchFailed("No notification backend available")


def _dispatch(backend: NotifyBackend, title: str, message: str) -> None:
    argv = build_command(backend, title, message)
    try:
        result = subprocess.run(
            argv, capture_output=True, text=True, timeout=DISPATCH_TIMEOUT, check=False
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise NotificationDispatchFailed(f"{backend.value} failed: {e}") from e
    if result.returncode != 0:
        raise NotificationDispatchFailed(
            f"{backend.value} exited {result.returncode}: {result.stderr.strip()}"
        )


def send_notification(title: str, message: str) -> SoftResult:
    """Show a desktop notification. Never raises."""
    backend = detect_backend()
    try:
        _dispatch(backend, title, message)
    except NotificationDispatchFailed as e:
        logger.warning("Notification not delivered", backend=backend.value, error=str(e))
        return SoftResult.failure(str(e))

    logger.info("Notification sent", backend=backend.value, title=title)
    return SoftResult.success(backend.value)
