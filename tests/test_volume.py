"""Tests for home volume seeding."""

import json
import subprocess
from unittest.mock import patch

import pytest

from ai_pod.errors import ConfigShapeError, RuntimeCommandFailed
from ai_pod.identity import derive_identity
from ai_pod.runtime import RuntimeClient
from ai_pod.volume import SEED_MOUNT, HomeVolumeLifecycle, HomeVolumeState


@pytest.fixture
def identity():
    return derive_identity("/w/proj-a")


@pytest.fixture
def volumes(fake_runtime, config):
    return HomeVolumeLifecycle(fake_runtime, config)


class TestEnsureSeeded:
    """Test ensure_seeded."""

    def test_seeds_absent_volume(self, volumes, fake_runtime, identity):
        """A missing volume is created and seeded."""
        assert volumes.state(identity) is HomeVolumeState.ABSENT
        assert volumes.ensure_seeded(identity, "img") is True
        assert identity.volume_name in fake_runtime.volumes
        assert volumes.state(identity) is HomeVolumeState.SEEDED

    def test_existing_volume_not_reseeded(self, volumes, fake_runtime, identity):
        """Existing volumes are left alone."""
        fake_runtime.volumes.add(identity.volume_name)
        assert volumes.ensure_seeded(identity, "img") is False
        assert fake_runtime.calls == []


class TestSeed:
    """Test seed."""

    def test_helper_copies_image_home(self, volumes, fake_runtime, identity, config):
        """Helper runs as root with the volume on the seed mount."""
        volumes.seed(identity, "img")

        helper = fake_runtime.specs[0]
        assert helper.remove is True
        assert helper.user == "root"
        assert helper.volumes == [f"{identity.volume_name}:{SEED_MOUNT}"]
        assert helper.entrypoint == "sh"
        assert f"cp -a {config.container_home}/. {SEED_MOUNT}/" in helper.command[1]

    def test_seed_container_removed(self, volumes, fake_runtime, identity):
        """The seed container never outlives seeding."""
        volumes.seed(identity, "img")
        assert identity.seed_container_name not in fake_runtime.containers
        assert fake_runtime.ops()[-1] == "remove_container"

    def test_imports_host_config(self, volumes, fake_runtime, identity, config):
        """Config directory and credentials file are copied when present."""
        config.agent_config_dir.mkdir(parents=True)
        config.agent_credentials_file.write_text("{}")

        volumes.seed(identity, "img")

        dests = [dest for _, _, dest in fake_runtime.copies]
        home = config.container_home
        assert f"{home}/.claude" in dests
        assert f"{home}/.claude.json" in dests
        assert f"{home}/.claude/CLAUDE.md" in dests
        assert f"{home}/.claude/settings.json" in dests
        assert all(
            container == identity.seed_container_name for _, container, _ in fake_runtime.copies
        )

    def test_missing_host_config_skipped(self, volumes, fake_runtime, identity, config):
        """Only the generated files are copied when the operator has no config."""
        volumes.seed(identity, "img")
        dests = [dest for _, _, dest in fake_runtime.copies]
        home = config.container_home
        assert dests == [f"{home}/.claude/CLAUDE.md", f"{home}/.claude/settings.json"]

    def test_copy_failure_is_not_fatal(self, volumes, fake_runtime, identity):
        """Credential copy is best effort."""
        fake_runtime.fail.add("copy_into")
        volumes.seed(identity, "img")
        assert identity.volume_name in fake_runtime.volumes

    def test_helper_failure_removes_volume(self, volumes, fake_runtime, identity):
        """A half-seeded volume is not left behind."""
        fake_runtime.fail.add("run_helper")
        with pytest.raises(RuntimeCommandFailed):
            volumes.seed(identity, "img")
        assert identity.volume_name not in fake_runtime.volumes

    def test_bad_settings_abort_before_volume(self, volumes, fake_runtime, identity, config):
        """Settings that cannot take the hook stop seeding before anything is created."""
        config.agent_config_dir.mkdir(parents=True)
        config.agent_settings_path.write_text(json.dumps(["not", "an", "object"]))
        with pytest.raises(ConfigShapeError):
            volumes.seed(identity, "img")
        assert fake_runtime.calls == []


class DockerCli:
    """subprocess.run stand-in that answers like the docker CLI."""

    def __init__(self) -> None:
        self.volumes: set[str] = set()
        self.argvs: list[list[str]] = []

    def __call__(self, argv, **kwargs):
        self.argvs.append(argv)
        args = argv[1:]
        if args[:2] == ["volume", "exists"]:
            stderr = "docker: 'volume exists' is not a docker command."
            return subprocess.CompletedProcess(argv, 1, "", stderr)
        if args[:2] == ["volume", "inspect"]:
            name = args[-1]
            if name in self.volumes:
                return subprocess.CompletedProcess(argv, 0, f"{name}\n", "")
            return subprocess.CompletedProcess(argv, 1, "[]\n", f"Error: No such volume: {name}")
        if args[:2] == ["volume", "create"]:
            self.volumes.add(args[-1])
        return subprocess.CompletedProcess(argv, 0, "", "")


class TestSeedOnceWithDocker:
    """Seeding through the real RuntimeClient with the docker binary."""

    def test_second_launch_does_not_reseed(self, config, identity):
        """An existing docker volume is detected and left alone."""
        docker = DockerCli()
        volumes = HomeVolumeLifecycle(RuntimeClient("docker"), config)

        with patch("subprocess.run", side_effect=docker):
            assert volumes.ensure_seeded(identity, "img") is True
            seeded_calls = len(docker.argvs)
            assert volumes.ensure_seeded(identity, "img") is False

        later = docker.argvs[seeded_calls:]
        assert later == [
            ["docker", "volume", "inspect", "--format", "{{.Name}}", identity.volume_name]
        ]
