"""Generated runtime configuration copied into containers.

Both documents are rebuilt on every launch from the operator's own files,
which are only ever read.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from .config import AiPodConfig
from .errors import ConfigShapeError

logger = structlog.get_logger()

BRIEFING_PREAMBLE = """# Container Environment
You are running inside a Podman container. To reach services on the host machine,
use `{alias}` instead of `localhost`.

For example: `curl http://{alias}:3000`

Working directory: {workdir}
"""

COMPLETION_HOOK_EVENT = "Stop"


@dataclass(frozen=True)
class RuntimeFiles:
    briefing: Path
    settings: Path


def hook_command(port: int, alias: str) -> str:
    """Shell command the in-container hook runs when the agent stops."""
    return f"curl -sf -X POST http://{alias}:{port}/notify || true"


def merge_briefing(
    host_briefing: Path | None,
    alias: str = "host.containers.internal",
    workdir: str = "/app",
) -> str:
    """Container preamble followed by the operator's own briefing, if any."""
    content = BRIEFING_PREAMBLE.format(alias=alias, workdir=workdir)
    if host_briefing is not None and host_briefing.is_file():
        content += "\n" + host_briefing.read_text(encoding="utf-8")
    return content


def _load_host_settings(host_settings: Path | None) -> Any:
    if host_settings is None or not host_settings.is_file():
        return {}
    try:
        return json.loads(host_settings.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("Ignoring malformed settings file", path=str(host_settings), error=str(e))
        return {}


def merge_settings(
    host_settings: Path | None,
    port: int,
    alias: str = "host.containers.internal",
) -> dict[str, Any]:
    """Operator settings with the completion hook injected.

    Raises:
        ConfigShapeError: If the settings root, or its `hooks` key, is not an object.
    """
    settings = _load_host_settings(host_settings)
    if not isinstance(settings, dict):
        raise ConfigShapeError(
            f"{host_settings} must contain a JSON object, found {type(settings).__name__}",
            hint="Fix or move the file aside, then launch again.",
        )

    hooks = settings.setdefault("hooks", {})
    if not isinstance(hooks, dict):
        raise ConfigShapeError(
            f"'hooks' in {host_settings} must be an object, found {type(hooks).__name__}",
            hint="Fix the 'hooks' entry, then launch again.",
        )

    hooks[COMPLETION_HOOK_EVENT] = [
        {
            "matcher": "*",
            "hooks": [{"type": "command", "command": hook_command(port, alias)}],
        }
    ]
    return settings


def write_runtime_files(config: AiPodConfig, port: int | None = None) -> RuntimeFiles:
    """Regenerate both runtime documents in the private state directory."""
    port = port if port is not None else config.notify_port
    config.ensure_dirs()

    briefing = merge_briefing(
        config.agent_briefing_path,
        alias=config.host_gateway,
        workdir=config.workspace_mount,
    )
    config.runtime_briefing.write_text(briefing, encoding="utf-8")

    settings = merge_settings(config.agent_settings_path, port, alias=config.host_gateway)
    config.runtime_settings.write_text(json.dumps(settings, indent=2) + "\n", encoding="utf-8")

    logger.debug(
        "Runtime config written",
        briefing=str(config.runtime_briefing),
        settings=str(config.runtime_settings),
    )
    return RuntimeFiles(briefing=config.runtime_briefing, settings=config.runtime_settings)
