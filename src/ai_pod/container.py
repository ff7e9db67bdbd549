"""Container lifecycle for workspaces.

Container states, always re-probed from the runtime before acting:
- absent: nothing exists; create a fresh container and start it attached
- stopped: a stale container from an earlier session; removed and recreated,
  since its mounts, env and port bindings were fixed at creation time
- running: attach to it directly

A rebuild removes the container only. The home volume survives everything
except `clean`.
"""

import sys
from dataclasses import dataclass
from pathlib import Path

import structlog

from .config import AiPodConfig
from .errors import SoftResult
from .identity import WorkspaceIdentity
from .runtime import ContainerRow, ContainerSpec, ContainerState, RuntimeClient
from .runtime_config import write_runtime_files
from .volume import HomeVolumeLifecycle

logger = structlog.get_logger()


@dataclass(frozen=True)
class CleanReport:
    container_found: bool
    volume_found: bool
    container_removed: SoftResult | None = None
    volume_removed: SoftResult | None = None


class ContainerLifecycle:
    """Reconciles a workspace's container against the runtime."""

    def __init__(
        self,
        runtime: RuntimeClient,
        config: AiPodConfig,
        volumes: HomeVolumeLifecycle | None = None,
    ) -> None:
        self.runtime = runtime
        self.config = config
        self.volumes = volumes or HomeVolumeLifecycle(runtime, config)

    def state(self, identity: WorkspaceIdentity) -> ContainerState:
        return self.runtime.container_state(identity.container_name)

    def _base_spec(self, identity: WorkspaceIdentity, workspace: Path, image: str) -> ContainerSpec:
        return ContainerSpec(
            image=image,
            volumes=[
                f"{workspace}:{self.config.workspace_mount}:Z",
                f"{identity.volume_name}:{self.config.container_home}",
            ],
            add_hosts=[f"{self.config.host_gateway}:host-gateway"],
            env={
                "HOST_GATEWAY": self.config.host_gateway,
                "NOTIFY_URL": self.config.notify_url,
            },
        )

    def _prepare(self, identity: WorkspaceIdentity, image: str, rebuild: bool) -> None:
        name = identity.container_name
        if rebuild and self.runtime.exists(name):
            logger.info("Removing container for rebuild", container=name)
            result = self.runtime.remove_container(name, force=True)
            if not result.ok:
                logger.warning("Could not remove container, continuing", container=name)

        self.volumes.ensure_seeded(identity, image)

    def ensure_launched(
        self,
        identity: WorkspaceIdentity,
        workspace: Path,
        image: str,
        rebuild: bool = False,
    ) -> int:
        """Bring the workspace container up and attach the terminal to it.

        Returns:
            Exit status of the interactive session. Detach and interrupt both
            end up here and are not errors.
        """
        name = identity.container_name
        self._prepare(identity, image, rebuild)

        state = self.state(identity)
        if state is ContainerState.RUNNING:
            logger.info("Attaching to running container", container=name)
            return self._attach(name)

        if state is ContainerState.STOPPED_STALE:
            logger.info("Removing stale container", container=name)
            self.runtime.remove_container(name, force=True)

        self._create(identity, workspace, image)
        self.runtime.start(name)
        return self._attach(name)

    def _create(self, identity: WorkspaceIdentity, workspace: Path, image: str) -> None:
        name = identity.container_name
        home = self.config.container_home
        files = write_runtime_files(self.config)

        spec = self._base_spec(identity, workspace, image)
        spec.name = name
        spec.interactive = True
        spec.tty = True
        spec.init = True

        logger.info("Creating container", container=name, image=image)
        self.runtime.create_container(spec)

        self.runtime.copy_into(files.briefing, name, f"{home}/.claude/CLAUDE.md")
        self.runtime.copy_into(files.settings, name, f"{home}/.claude/settings.json")

    def _attach(self, name: str) -> int:
        status = self.runtime.attach(name)
        if status != 0:
            logger.info("Session ended", container=name, exit_code=status)
        return status

    def run_one_off(
        self,
        identity: WorkspaceIdentity,
        workspace: Path,
        image: str,
        command: str,
        args: list[str] | tuple[str, ...] = (),
        rebuild: bool = False,
    ) -> int:
        """Run a single command in a throwaway container and wait for it.

        Returns:
            The command's exit status.
        """
        self._prepare(identity, image, rebuild)

        spec = self._base_spec(identity, workspace, image)
        spec.remove = True
        spec.interactive = True
        spec.tty = sys.stdin.isatty()
        spec.entrypoint = command
        spec.command = list(args)

        logger.info("Running command", command=command, args=list(args), image=image)
        return self.runtime.run_interactive(spec)

    def clean(self, identity: WorkspaceIdentity) -> CleanReport:
        """Remove the workspace's container and home volume, best effort."""
        name = identity.container_name
        container_found = self.runtime.exists(name)
        container_removed = None
        if container_found:
            if self.runtime.is_running(name):
                self.runtime.stop(name)
            container_removed = self.runtime.remove_container(name, force=True)

        volume_found = self.runtime.volume_exists(identity.volume_name)
        volume_removed = None
        if volume_found:
            volume_removed = self.runtime.remove_volume(identity.volume_name)

        return CleanReport(
            container_found=container_found,
            volume_found=volume_found,
            container_removed=container_removed,
            volume_removed=volume_removed,
        )

    def list_containers(self) -> list[ContainerRow]:
        return self.runtime.list_containers(self.config.container_prefix)
