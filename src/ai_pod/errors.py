"""Error types for ai-pod.

Fatal errors derive from AiPodError and carry an optional remediation hint
that the CLI prints underneath the error line.
"""

from dataclasses import dataclass


class AiPodError(Exception):
    """Base class for errors that stop the current CLI invocation."""

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class RuntimeUnavailable(AiPodError):
    """Raised when the container runtime binary itself cannot be invoked."""

    pass


class RuntimeCommandFailed(AiPodError):
    """Raised when a runtime subcommand exits with a failure status."""

    def __init__(
        self,
        message: str,
        returncode: int | None = None,
        stderr: str = "",
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.returncode = returncode
        self.stderr = stderr


class ConfigShapeError(AiPodError):
    """Raised when the operator's settings document cannot take the hook entry."""

    pass


class NotificationDispatchFailed(AiPodError):
    """Raised inside the notification backend; never leaves it."""

    pass


class WorkspaceError(AiPodError):
    """Raised when the workspace is missing or not set up for ai-pod."""

    pass


@dataclass(frozen=True)
class SoftResult:
    """Outcome of a best-effort operation. Callers may ignore it."""

    ok: bool
    detail: str = ""

    @classmethod
    def success(cls, detail: str = "") -> "SoftResult":
        return cls(ok=True, detail=detail)

    @classmethod
    def failure(cls, detail: str) -> "SoftResult":
        return cls(ok=False, detail=detail)
