"""Container runtime client.

Thin wrapper around the podman (or docker) CLI. Query and primary operations
raise on failure; best-effort operations return a SoftResult instead.
"""

import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import structlog

from .errors import RuntimeCommandFailed, RuntimeUnavailable, SoftResult

logger = structlog.get_logger()

# Exit status reported for a session that ended with Ctrl-C
INTERRUPTED_EXIT = 130


class ContainerState(str, Enum):
    ABSENT = "absent"
    STOPPED_STALE = "stopped"
    RUNNING = "running"


@dataclass
class ContainerSpec:
    """Arguments shared by `create` and `run`."""

    image: str
    name: str | None = None
    volumes: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    add_hosts: list[str] = field(default_factory=list)
    interactive: bool = False
    tty: bool = False
    init: bool = False
    remove: bool = False
    privileged: bool = False
    user: str | None = None
    entrypoint: str | None = None
    command: list[str] = field(default_factory=list)

    def to_args(self) -> list[str]:
        args: list[str] = []
        if self.remove:
            args.append("--rm")
        if self.interactive:
            args.append("-i")
        if self.tty:
            args.append("-t")
        if self.init:
            args.append("--init")
        if self.privileged:
            args.append("--privileged")
        if self.name:
            args += ["--name", self.name]
        if self.user:
            args += ["--user", self.user]
        for volume in self.volumes:
            args += ["-v", volume]
        for host in self.add_hosts:
            args.append(f"--add-host={host}")
        for key, value in self.env.items():
            args += ["-e", f"{key}={value}"]
        if self.entrypoint:
            args += ["--entrypoint", self.entrypoint]
        args.append(self.image)
        args += self.command
        return args


@dataclass(frozen=True)
class ContainerRow:
    name: str
    status: str
    created: str


class RuntimeClient:
    """Drives one container runtime binary."""

    def __init__(self, binary: str = "podman") -> None:
        self.binary = binary

    # -------------------------------------------------------------------------
    # Invocation helpers
    # -------------------------------------------------------------------------

    def _unavailable(self, error: OSError) -> RuntimeUnavailable:
        return RuntimeUnavailable(
            f"Cannot run '{self.binary}': {error.strerror or error}",
            hint=f"Install {self.binary} or set AI_POD_RUNTIME to an available runtime.",
        )

    def _run(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        """Run a runtime subcommand with captured output."""
        argv = [self.binary, *args]
        logger.debug("Runtime command", argv=argv)
        try:
            return subprocess.run(argv, capture_output=True, text=True, check=False)
        except OSError as e:
            raise self._unavailable(e) from e

    def _run_attached(self, args: list[str]) -> int:
        """Run a runtime subcommand with the caller's terminal passed through."""
        argv = [self.binary, *args]
        logger.debug("Runtime command (attached)", argv=argv)
        try:
            return subprocess.run(argv, check=False).returncode
        except OSError as e:
            raise self._unavailable(e) from e
        except KeyboardInterrupt:
            return INTERRUPTED_EXIT

    def _check(self, result: subprocess.CompletedProcess[str], action: str) -> None:
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise RuntimeCommandFailed(
                f"{action} failed: {stderr or f'exit code {result.returncode}'}",
                returncode=result.returncode,
                stderr=stderr,
            )

    def _soft(self, args: list[str], action: str) -> SoftResult:
        try:
            self._check(self._run(args), action)
        except RuntimeCommandFailed as e:
            logger.warning("Best-effort runtime command failed", action=action, error=str(e))
            return SoftResult.failure(str(e))
        return SoftResult.success()

    # -------------------------------------------------------------------------
    # Probes
    # -------------------------------------------------------------------------

    def _names(self, all_states: bool, name: str) -> str:
        args = ["ps"]
        if all_states:
            args.append("-a")
        args += ["--filter", f"name=^{name}$", "--format", "{{.Names}}"]
        result = self._run(args)
        self._check(result, f"Querying container {name}")
        return result.stdout.strip()

    def exists(self, name: str) -> bool:
        """Whether a container with exactly this name exists in any state."""
        return bool(self._names(True, name))

    def is_running(self, name: str) -> bool:
        return bool(self._names(False, name))

    def container_state(self, name: str) -> ContainerState:
        if self.is_running(name):
            return ContainerState.RUNNING
        if self.exists(name):
            return ContainerState.STOPPED_STALE
        return ContainerState.ABSENT

    def volume_exists(self, name: str) -> bool:
        # `volume exists` is podman-only; `volume inspect` works on both runtimes
        result = self._run(["volume", "inspect", "--format", "{{.Name}}", name])
        if result.returncode == 0:
            return True
        if "no such volume" in (result.stderr or "").lower():
            return False
        self._check(result, f"Querying volume {name}")
        return False

    def image_exists(self, image: str) -> bool:
        return self._run(["image", "inspect", image]).returncode == 0

    def list_containers(self, prefix: str) -> list[ContainerRow]:
        result = self._run(
            [
                "ps",
                "-a",
                "--filter",
                f"name=^{prefix}-",
                "--format",
                "{{.Names}}\t{{.Status}}\t{{.CreatedAt}}",
            ]
        )
        self._check(result, "Listing containers")
        rows = []
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            parts = line.split("\t")
            parts += [""] * (3 - len(parts))
            rows.append(ContainerRow(name=parts[0], status=parts[1], created=parts[2]))
        return rows

    # -------------------------------------------------------------------------
    # Primary operations
    # -------------------------------------------------------------------------

    def create_volume(self, name: str) -> None:
        self._check(self._run(["volume", "create", name]), f"Creating volume {name}")

    def create_container(self, spec: ContainerSpec) -> None:
        self._check(self._run(["create", *spec.to_args()]), f"Creating container {spec.name}")

    def start(self, name: str) -> None:
        self._check(self._run(["start", name]), f"Starting container {name}")

    def run_helper(self, spec: ContainerSpec) -> None:
        """Run a short-lived, non-interactive container to completion."""
        self._check(self._run(["run", *spec.to_args()]), f"Running helper for {spec.image}")

    def attach(self, name: str) -> int:
        """Attach the terminal to a running container. Returns the session status."""
        return self._run_attached(["attach", name])

    def run_interactive(self, spec: ContainerSpec) -> int:
        """Run a container in the foreground. Returns its exit status."""
        return self._run_attached(["run", *spec.to_args()])

    def build_image(self, image: str, dockerfile: Path, context: Path) -> None:
        status = self._run_attached(["build", "-t", image, "-f", str(dockerfile), str(context)])
        if status != 0:
            raise RuntimeCommandFailed(
                f"{self.binary} build failed (exit code {status})", returncode=status
            )

    # -------------------------------------------------------------------------
    # Best-effort operations
    # -------------------------------------------------------------------------

    def stop(self, name: str) -> SoftResult:
        return self._soft(["stop", name], f"Stopping container {name}")

    def remove_container(self, name: str, force: bool = False) -> SoftResult:
        args = ["rm", name] if not force else ["rm", "-f", name]
        return self._soft(args, f"Removing container {name}")

    def remove_volume(self, name: str) -> SoftResult:
        return self._soft(["volume", "rm", name], f"Removing volume {name}")

    def copy_into(self, source: str | Path, container: str, dest: str) -> SoftResult:
        return self._soft(["cp", str(source), f"{container}:{dest}"], f"Copying {source}")
