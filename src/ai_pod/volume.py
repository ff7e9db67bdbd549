"""Home volume lifecycle.

Each workspace gets a named volume mounted as the agent's home directory.
It is seeded once from the image's own home directory plus the operator's
Claude Code configuration, and is never re-seeded while it exists.
"""

import shlex
from enum import Enum

import structlog

from .config import AiPodConfig
from .errors import AiPodError
from .identity import WorkspaceIdentity
from .runtime import ContainerSpec, RuntimeClient
from .runtime_config import write_runtime_files

logger = structlog.get_logger()

SEED_MOUNT = "/mnt/home"


class HomeVolumeState(str, Enum):
    ABSENT = "absent"
    SEEDED = "seeded"


class HomeVolumeLifecycle:
    """Creates and seeds per-workspace home volumes."""

    def __init__(self, runtime: RuntimeClient, config: AiPodConfig) -> None:
        self.runtime = runtime
        self.config = config

    def state(self, identity: WorkspaceIdentity) -> HomeVolumeState:
        if self.runtime.volume_exists(identity.volume_name):
            return HomeVolumeState.SEEDED
        return HomeVolumeState.ABSENT

    def ensure_seeded(self, identity: WorkspaceIdentity, image: str) -> bool:
        """Seed the volume if it does not exist yet. Returns True if it seeded."""
        if self.state(identity) is HomeVolumeState.SEEDED:
            logger.debug("Home volume already seeded", volume=identity.volume_name)
            return False
        self.seed(identity, image)
        return True

    def _copy_home_script(self) -> str:
        home = shlex.quote(self.config.container_home)
        return (
            f"cp -a {home}/. {SEED_MOUNT}/ && "
            f'chown -R "$(stat -c %u:%g {home})" {SEED_MOUNT}'
        )

    def seed(self, identity: WorkspaceIdentity, image: str) -> None:
        """Create the volume and fill it.

        Args:
            identity: Workspace identity owning the volume
            image: Image whose home directory is copied in
        """
        volume = identity.volume_name
        seed_container = identity.seed_container_name
        home = self.config.container_home

        files = write_runtime_files(self.config)

        logger.info("Seeding home volume", volume=volume, image=image)
        self.runtime.create_volume(volume)

        try:
            self.runtime.run_helper(
                ContainerSpec(
                    image=image,
                    remove=True,
                    privileged=True,
                    user="root",
                    volumes=[f"{volume}:{SEED_MOUNT}"],
                    entrypoint="sh",
                    command=["-c", self._copy_home_script()],
                )
            )
            # Leftover from an interrupted seed would block the name
            self.runtime.remove_container(seed_container, force=True)
            self.runtime.create_container(
                ContainerSpec(image=image, name=seed_container, volumes=[f"{volume}:{home}"])
            )
        except AiPodError:
            logger.error("Seeding failed, removing half-built volume", volume=volume)
            self.runtime.remove_volume(volume)
            raise

        try:
            self._import_host_config(seed_container)
            self.runtime.copy_into(files.briefing, seed_container, f"{home}/.claude/CLAUDE.md")
            self.runtime.copy_into(files.settings, seed_container, f"{home}/.claude/settings.json")
        finally:
            self.runtime.remove_container(seed_container, force=True)

        logger.info("Home volume seeded", volume=volume)

    def _import_host_config(self, seed_container: str) -> None:
        """Copy the operator's Claude Code config directory and credentials file."""
        home = self.config.container_home
        config_dir = self.config.agent_config_dir
        credentials = self.config.agent_credentials_file

        if config_dir.is_dir():
            self.runtime.copy_into(f"{config_dir}/.", seed_container, f"{home}/.claude")
        else:
            logger.debug("No host config directory to import", path=str(config_dir))

        if credentials.is_file():
            self.runtime.copy_into(credentials, seed_container, f"{home}/{credentials.name}")
        else:
            logger.debug("No host credentials file to import", path=str(credentials))
