"""Pytest fixtures for ai-pod tests."""

from pathlib import Path

import pytest

from ai_pod.config import AiPodConfig
from ai_pod.errors import RuntimeCommandFailed, SoftResult
from ai_pod.runtime import ContainerRow, ContainerSpec, ContainerState


class FakeRuntime:
    """In-memory stand-in for RuntimeClient.

    Operation names listed in `fail` raise (primary operations) or return a
    failed SoftResult (best-effort operations).
    """

    def __init__(self) -> None:
        self.containers: set[str] = set()
        self.running: set[str] = set()
        self.volumes: set[str] = set()
        self.images: set[str] = set()
        self.rows: list[ContainerRow] = []
        self.fail: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self.specs: list[ContainerSpec] = []
        self.copies: list[tuple[str, str, str]] = []
        self.attach_status = 0
        self.run_status = 0

    def _primary(self, op: str, target: str) -> None:
        self.calls.append((op, target))
        if op in self.fail:
            raise RuntimeCommandFailed(f"{op} {target} failed", returncode=125)

    def _soft(self, op: str, target: str) -> SoftResult:
        self.calls.append((op, target))
        if op in self.fail:
            return SoftResult.failure(f"{op} {target} failed")
        return SoftResult.success()

    def ops(self) -> list[str]:
        return [op for op, _ in self.calls]

    # Probes

    def exists(self, name: str) -> bool:
        return name in self.containers

    def is_running(self, name: str) -> bool:
        return name in self.running

    def container_state(self, name: str) -> ContainerState:
        if self.is_running(name):
            return ContainerState.RUNNING
        if self.exists(name):
            return ContainerState.STOPPED_STALE
        return ContainerState.ABSENT

    def volume_exists(self, name: str) -> bool:
        return name in self.volumes

    def image_exists(self, image: str) -> bool:
        return image in self.images

    def list_containers(self, prefix: str) -> list[ContainerRow]:
        return [row for row in self.rows if row.name.startswith(f"{prefix}-")]

    # Primary operations

    def create_volume(self, name: str) -> None:
        self._primary("create_volume", name)
        self.volumes.add(name)

    def create_container(self, spec: ContainerSpec) -> None:
        self._primary("create_container", spec.name or "")
        self.specs.append(spec)
        self.containers.add(spec.name or "")

    def start(self, name: str) -> None:
        self._primary("start", name)
        self.running.add(name)

    def run_helper(self, spec: ContainerSpec) -> None:
        self._primary("run_helper", spec.image)
        self.specs.append(spec)

    def attach(self, name: str) -> int:
        self._primary("attach", name)
        return self.attach_status

    def run_interactive(self, spec: ContainerSpec) -> int:
        self._primary("run_interactive", spec.image)
        self.specs.append(spec)
        return self.run_status

    def build_image(self, image: str, dockerfile: Path, context: Path) -> None:
        self._primary("build_image", image)
        self.images.add(image)

    # Best-effort operations

    def stop(self, name: str) -> SoftResult:
        result = self._soft("stop", name)
        if result.ok:
            self.running.discard(name)
        return result

    def remove_container(self, name: str, force: bool = False) -> SoftResult:
        result = self._soft("remove_container", name)
        if result.ok:
            self.containers.discard(name)
            self.running.discard(name)
        return result

    def remove_volume(self, name: str) -> SoftResult:
        result = self._soft("remove_volume", name)
        if result.ok:
            self.volumes.discard(name)
        return result

    def copy_into(self, source: str | Path, container: str, dest: str) -> SoftResult:
        self.copies.append((str(source), container, dest))
        return self._soft("copy_into", dest)


class FakeProcessTable:
    """In-memory stand-in for ProcessTable."""

    def __init__(self) -> None:
        self.serving: set[int] = set()
        self.spawned: list[list[str]] = []
        self.terminated: list[int] = []
        self.next_pid = 4242

    def is_serving(self, pid: int) -> bool:
        return pid in self.serving

    def terminate(self, pid: int) -> None:
        self.terminated.append(pid)
        self.serving.discard(pid)

    def spawn_detached(self, argv: list[str], log_file: Path) -> int:
        pid = self.next_pid
        self.next_pid += 1
        self.spawned.append(argv)
        self.serving.add(pid)
        return pid


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from the real home directory, Sentry and GitHub."""
    monkeypatch.setenv("AI_POD_HOME_DIR", str(tmp_path / "home"))
    monkeypatch.setenv("AI_POD_UPDATE_CHECK", "false")
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    monkeypatch.setattr("ai_pod.config.DEFAULT_CONFIG_PATH", tmp_path / "missing.toml")


@pytest.fixture
def home_dir(tmp_path):
    """Operator home directory."""
    home = tmp_path / "home"
    home.mkdir(exist_ok=True)
    return home


@pytest.fixture
def config(home_dir):
    """Configuration rooted in a temporary home directory."""
    return AiPodConfig(home_dir=home_dir)


@pytest.fixture
def fake_runtime():
    return FakeRuntime()


@pytest.fixture
def fake_processes():
    return FakeProcessTable()


@pytest.fixture
def workspace(tmp_path):
    """Workspace directory with an ai-pod.Dockerfile."""
    path = tmp_path / "work" / "proj-a"
    path.mkdir(parents=True)
    (path / "ai-pod.Dockerfile").write_text("FROM scratch\n")
    return path


@pytest.fixture
def cli_runner():
    """Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
