"""Configuration for ai-pod."""

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_DIR_NAME = ".ai-pod"
AGENT_DIR_NAME = ".claude"


class AiPodConfig(BaseSettings):
    """Settings for the ai-pod CLI and its notification daemon."""

    model_config = SettingsConfigDict(
        env_prefix="AI_POD_",
        extra="ignore",
    )

    # Container runtime CLI
    runtime: Literal["podman", "docker"] = Field(
        default="podman",
        description="Container runtime binary to drive",
    )

    # Notification daemon
    notify_port: int = Field(
        default=9876,
        ge=1024,
        le=65535,
        description="Port the notification daemon listens on",
    )
    notify_host: str = Field(
        default="0.0.0.0",
        description="Interface the notification daemon binds to",
    )

    # Container layout
    host_gateway: str = Field(
        default="host.containers.internal",
        description="Hostname containers use to reach the host",
    )
    container_prefix: str = Field(
        default="claude",
        description="Prefix for container names",
    )
    container_home: str = Field(
        default="/home/claude",
        description="Home directory of the agent user inside the image",
    )
    workspace_mount: str = Field(
        default="/app",
        description="Mount point of the workspace inside the container",
    )

    # Host paths
    home_dir: Path = Field(
        default_factory=Path.home,
        description="Operator home directory",
    )
    config_dir: Path | None = Field(
        default=None,
        description="Private state directory (defaults to ~/.ai-pod)",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )

    update_check: bool = Field(
        default=True,
        description="Check GitHub for a newer release on startup",
    )

    @model_validator(mode="after")
    def _default_config_dir(self) -> "AiPodConfig":
        if self.config_dir is None:
            self.config_dir = self.home_dir / CONFIG_DIR_NAME
        return self

    @property
    def state_dir(self) -> Path:
        """Resolved private state directory."""
        assert self.config_dir is not None
        return self.config_dir

    @property
    def pid_file(self) -> Path:
        return self.state_dir / "server.pid"

    @property
    def log_file(self) -> Path:
        return self.state_dir / "server.log"

    @property
    def runtime_settings(self) -> Path:
        return self.state_dir / "runtime-settings.json"

    @property
    def runtime_briefing(self) -> Path:
        return self.state_dir / "runtime-CLAUDE.md"

    @property
    def agent_config_dir(self) -> Path:
        """The operator's own Claude Code configuration directory."""
        return self.home_dir / AGENT_DIR_NAME

    @property
    def agent_settings_path(self) -> Path:
        return self.agent_config_dir / "settings.json"

    @property
    def agent_briefing_path(self) -> Path:
        return self.agent_config_dir / "CLAUDE.md"

    @property
    def agent_credentials_file(self) -> Path:
        """Account and OAuth state kept next to the config directory."""
        return self.home_dir / f"{AGENT_DIR_NAME}.json"

    @property
    def notify_url(self) -> str:
        """URL the in-container hook posts to."""
        return f"http://{self.host_gateway}:{self.notify_port}/notify"

    def ensure_dirs(self) -> None:
        """Create the private state directory."""
        self.state_dir.mkdir(parents=True, exist_ok=True)


DEFAULT_CONFIG_PATH = Path.home() / CONFIG_DIR_NAME / "config.toml"


def load_config(config_file: str | Path | None = None) -> AiPodConfig:
    """Load configuration from the config file and the environment.

    Priority (highest to lowest):
    1. Values in the config file
    2. Environment variables (AI_POD_*)
    3. Default values

    Args:
        config_file: Optional path to a config file

    Returns:
        Loaded configuration
    """
    import tomllib

    config_path = Path(config_file) if config_file else DEFAULT_CONFIG_PATH

    file_config: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
            file_config = data.get("ai_pod", {})

    return AiPodConfig(**file_config)
