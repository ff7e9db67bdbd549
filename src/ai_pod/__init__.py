"""ai-pod - Claude Code in per-workspace Podman containers."""

__version__ = "0.3.0"
